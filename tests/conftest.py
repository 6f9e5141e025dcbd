"""
Pytest configuration and shared fixtures.

Este módulo provee fixtures reutilizables para:
- Reloj fake (tiempo determinista para rate limiter, caché y sondeo)
- Gateway ETG stub y caché in-memory
- Caché SQL sobre SQLite in-memory (aiosqlite)
- Cliente HTTP de prueba contra la app FastAPI (ASGITransport)
"""

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.dependencies import build_services, get_services
from app.application.interfaces.clock import FakeClock
from app.application.services.cache_store import CacheStore
from app.config import Settings
from app.infrastructure.db.engine import build_sessionmaker
from app.infrastructure.db.repositories.cache_repo_sql import CacheRepoSQL
from app.infrastructure.db.tables import metadata
from app.infrastructure.etg.rate_limiter import EndpointRateLimiter
from app.infrastructure.in_memory.cache_repo import InMemoryCacheRepo
from app.infrastructure.in_memory.hotel_api import StubEtgGateway
from app.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# FIXTURES DE TIEMPO
# ============================================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


# ============================================================================
# FIXTURES DE CACHÉ
# ============================================================================

@pytest_asyncio.fixture
async def sql_session_maker():
    """SQLite in-memory con la tabla api_cache creada."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield build_sessionmaker(engine)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def cache_repo(request, sql_session_maker):
    """Ambos backends deben comportarse igual."""
    if request.param == "memory":
        return InMemoryCacheRepo()
    return CacheRepoSQL(sql_session_maker)


@pytest.fixture
def cache_store(cache_repo, fake_clock) -> CacheStore:
    return CacheStore(repo=cache_repo, clock=fake_clock)


@pytest.fixture
def stub_gateway() -> StubEtgGateway:
    return StubEtgGateway()


# ============================================================================
# FIXTURES DE CLIENTE HTTP
# ============================================================================

@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        use_in_memory=True,
        enrichment_batch_delay_seconds=0.0,
        booking_poll_interval_seconds=1.0,
        booking_poll_max_attempts=10,
    )


@pytest.fixture
def services(app_settings, stub_gateway, fake_clock):
    return build_services(
        app_settings,
        hotel_api=stub_gateway,
        cache_repo=InMemoryCacheRepo(),
        rate_limiter=EndpointRateLimiter(clock=fake_clock, sleep=fake_clock.sleep),
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest_asyncio.fixture
async def api_client(services) -> AsyncGenerator[AsyncClient, None]:
    """Cliente contra la app con servicios aislados por test."""
    app.dependency_overrides[get_services] = lambda: services

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    # Limpiar overrides
    app.dependency_overrides.clear()


# ============================================================================
# DATOS DE PRUEBA
# ============================================================================

@pytest.fixture
def las_vegas_search() -> dict:
    """Búsqueda de referencia: Las Vegas, 2 noches, 2 adultos."""
    return {
        "region_id": 4898,
        "checkin": "2025-03-15",
        "checkout": "2025-03-17",
        "guests": [{"adults": 2, "children": []}],
        "currency": "USD",
        "residency": "us",
        "language": "en",
    }


@pytest.fixture
def sample_guests() -> list[dict]:
    return [{"first_name": "Test", "last_name": "Guest"}]
