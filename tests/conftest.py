import os
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Keep the module-level engine off disk and error bodies generic BEFORE importing the app
os.environ["LOCALHOST_MODE"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from strepsil.main import app
from strepsil.database import Base, get_db
from strepsil.config import settings
from strepsil.security import FernetCipher, get_cipher
from strepsil.services.call_store import AiCallStore
from strepsil.services.provider_service import ProviderConfigService

settings.LOCALHOST_MODE = False


# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_ENCRYPTION_KEY = "test-encryption-key-for-strepsil"


@pytest.fixture
def cipher():
    return FernetCipher(TEST_ENCRYPTION_KEY)


@pytest.fixture
async def test_db(cipher):
    """Create a fresh test database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cipher] = lambda: cipher

    yield async_session

    app.dependency_overrides.clear()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def session(test_db):
    async with test_db() as s:
        yield s


@pytest.fixture
async def seeded_providers(session, cipher):
    """Default providers with no keys configured."""
    return await ProviderConfigService(session, cipher).seed_defaults()


@pytest.fixture
async def client(test_db):
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def make_call(session):
    """Insert a call record; created_at defaults to now."""
    store = AiCallStore(session)

    async def _make(
        provider="OpenAI",
        model_type="gpt-4o",
        endpoint="/v1/chat/completions",
        tokens_in=100,
        tokens_out=50,
        cost_per_token_in=0.00001,
        cost_per_token_out=0.00003,
        latency_ms=200,
        status="success",
        created_at=None,
        **extra,
    ):
        call, _ = await store.insert(
            {
                "provider": provider,
                "model_type": model_type,
                "endpoint": endpoint,
                "prompt": extra.pop("prompt", "user: hello"),
                "response": extra.pop("response", "hi"),
                "tokens_in": tokens_in,
                "tokens_out": tokens_out,
                "cost_per_token_in": cost_per_token_in,
                "cost_per_token_out": cost_per_token_out,
                "latency_ms": latency_ms,
                "status": status,
                **extra,
            },
            created_at=created_at,
        )
        return call

    return _make
