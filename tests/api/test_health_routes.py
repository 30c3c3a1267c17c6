"""Tests for health, setup status and the dashboard page."""
from datetime import datetime, timezone

from strepsil.schemas import ProviderUpdate
from strepsil.security import FernetCipher
from strepsil.services.provider_service import ProviderConfigService


class TestHealth:
    """Test the health endpoint."""

    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "strepsil-api"
        assert data["version"] == "1.0.0"
        assert data["database"] == "connected"
        assert data["checks"]["encryption"]["status"] == "ok"
        datetime.fromisoformat(data["timestamp"])

    async def test_degraded_on_key_mismatch(self, client, session, seeded_providers):
        other = FernetCipher("key-from-another-install")
        await ProviderConfigService(session, other).update("OpenAI", ProviderUpdate(api_key="sk-1"))

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["encryption"]["status"] == "error"


class TestSetupStatus:
    """Test setup status."""

    async def test_fresh_install(self, client, seeded_providers):
        data = (await client.get("/api/setup/status")).json()

        assert data["setupCompleted"] is False
        assert data["providersConfigured"] == 0
        assert len(data["providers"]) == 4

    async def test_configured_provider_counted(self, client, seeded_providers):
        await client.put("/api/providers/Anthropic", json={"api_key": "sk-ant", "active": True})
        await client.put("/api/providers/OpenAI", json={"api_key": "sk-oai"})

        data = (await client.get("/api/setup/status")).json()

        assert data["providersConfigured"] == 1


class TestDashboard:
    """Test the server-rendered dashboard."""

    async def test_empty(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "No calls recorded yet." in response.text

    async def test_totals_and_recent_calls(self, client, make_call):
        await make_call(
            provider="Anthropic",
            model_type="claude-3-haiku-20240307",
            tokens_in=1000,
            tokens_out=0,
            cost_per_token_in=0.001,
            created_at=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
        )

        response = await client.get("/")

        assert "$1.00" in response.text
        assert "claude-3-haiku-20240307" in response.text
        assert "2024-03-01 12:30:00" in response.text
