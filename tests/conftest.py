from typing import AsyncGenerator
from unittest.mock import AsyncMock, Mock

import pytest
from faker import Faker
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.asyncio import Redis

from gatekeeper.core.config import Settings
from gatekeeper.main import create_app
from gatekeeper.services.authenticator import JWTAuthenticator
from gatekeeper.services.cache.counter_store import MemoryCounterStore
from gatekeeper.services.claim_validator import ClaimValidator
from gatekeeper.services.identity import StaticIdentityResolver
from gatekeeper.services.token_codec import TokenCodec
from tests.utils import FakeClock

SECRET_KEY = "secret"
SERVICE_NAME = "svc"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def faker_instance() -> Faker:
    """Create a Faker instance for test data generation."""
    return Faker()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(clock: FakeClock) -> TokenCodec:
    return TokenCodec(key=SECRET_KEY, algorithm="HS256", leeway=60, clock=clock)


@pytest.fixture
def resolver() -> StaticIdentityResolver:
    return StaticIdentityResolver.from_ids(["u1", "u2"])


@pytest.fixture
def authenticator(codec: TokenCodec, resolver: StaticIdentityResolver) -> JWTAuthenticator:
    return JWTAuthenticator(
        codec=codec,
        resolver=resolver,
        validator=ClaimValidator(issuer=SERVICE_NAME, audience=SERVICE_NAME),
        expiration=3600,
        issuer=SERVICE_NAME,
        audience=SERVICE_NAME,
    )


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryCounterStore:
    return MemoryCounterStore(clock)


@pytest.fixture
def mock_redis_client() -> AsyncMock:
    """Create a mock Redis client."""
    mock_redis = AsyncMock(spec=Redis)
    mock_redis.ping = AsyncMock(return_value=True)
    mock_redis.get = AsyncMock(return_value=None)
    mock_redis.set = AsyncMock(return_value=True)
    mock_redis.delete = AsyncMock(return_value=1)
    mock_redis.aclose = AsyncMock()
    mock_redis.register_script = Mock(return_value=AsyncMock(return_value=1))
    return mock_redis


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        secret_key=SECRET_KEY,
        jwt_issuer=SERVICE_NAME,
        jwt_audience=SERVICE_NAME,
        rate_limit_enabled=True,
        rate_limit_default=5,
        rate_limit_window=60,
        protected_paths="/api/v1/auth/me",
    )


@pytest.fixture
def test_app(
    test_settings: Settings,
    resolver: StaticIdentityResolver,
    memory_store: MemoryCounterStore,
    clock: FakeClock,
) -> FastAPI:
    """FastAPI application wired with in-memory counters and the fake clock."""
    return create_app(
        resolver,
        counter_store=memory_store,
        settings=test_settings,
        clock=clock,
        configure_logging=False,
    )


@pytest.fixture
def app_authenticator(test_app: FastAPI) -> JWTAuthenticator:
    return test_app.state.authenticator


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac
