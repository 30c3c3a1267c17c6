"""Tests for the /api/settings routes."""
import pytest

from strepsil.models import Setting
from strepsil.services.settings_service import SettingsService


@pytest.fixture
async def seeded_settings(session, cipher):
    return await SettingsService(session, cipher).seed_defaults()


class TestSettings:
    """Test the settings key/value API."""

    async def test_get_all(self, client, seeded_settings):
        response = await client.get("/api/settings")

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["setup_completed"] == "false"
        assert settings["app_name"] == "Strepsil"

    async def test_put_and_get(self, client):
        response = await client.put("/api/settings/theme", json={"value": "dark"})
        assert response.status_code == 200

        response = await client.get("/api/settings/theme")
        assert response.json() == {"key": "theme", "value": "dark"}

    async def test_put_boolean(self, client):
        await client.put("/api/settings/notifications", json={"value": True})
        assert (await client.get("/api/settings/notifications")).json()["value"] == "true"

    async def test_put_requires_value(self, client):
        response = await client.put("/api/settings/theme", json={"value": None})
        assert response.status_code == 400
        assert response.json() == {"error": "Value is required"}

    async def test_encrypted_setting(self, client, session):
        await client.put("/api/settings/webhook_secret", json={"value": "s3cret", "encrypted": True})

        row = await session.get(Setting, "webhook_secret")
        assert row.encrypted is True
        assert row.value != "s3cret"
        assert (await client.get("/api/settings/webhook_secret")).json()["value"] == "s3cret"

    async def test_get_missing(self, client):
        response = await client.get("/api/settings/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Setting not found"}

    async def test_listing_survives_undecryptable_value(self, client, session):
        session.add(Setting(key="legacy_token", value="not-a-token", encrypted=True))
        await session.commit()
        await client.put("/api/settings/theme", json={"value": "dark"})

        response = await client.get("/api/settings")

        assert response.status_code == 200
        assert response.json()["settings"] == {"legacy_token": None, "theme": "dark"}


class TestSetupLifecycle:
    """Test completing and resetting setup."""

    async def test_complete_setup(self, client, seeded_settings, seeded_providers):
        response = await client.post("/api/settings/complete-setup")
        assert response.status_code == 200

        status = (await client.get("/api/setup/status")).json()
        assert status["setupCompleted"] is True

    async def test_reset_clears_provider_keys(self, client, seeded_settings, seeded_providers):
        await client.put("/api/providers/OpenAI", json={"api_key": "sk-1", "active": True})
        await client.post("/api/settings/complete-setup")

        response = await client.post("/api/settings/reset")

        assert response.status_code == 200
        status = (await client.get("/api/setup/status")).json()
        assert status["setupCompleted"] is False
        assert status["providersConfigured"] == 0
        provider = (await client.get("/api/providers/OpenAI")).json()["provider"]
        assert provider["configured"] is False
        assert provider["active"] is False

    async def test_app_info(self, client, seeded_settings, make_call):
        await make_call(latency_ms=100)
        await make_call(latency_ms=300)

        response = await client.get("/api/settings/app/info")

        assert response.status_code == 200
        data = response.json()
        assert data["app"] == {"name": "Strepsil", "version": "1.0.0", "setupCompleted": False}
        assert data["stats"]["total_calls"] == 2
        assert data["stats"]["average_latency_ms"] == 200
