"""Shared test fixtures for the Atlas API test suite."""

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from atlas.core.database import Base
from atlas.main import app
from atlas.models.enums import SiteType
from atlas.modules.investor_score.schemas import Site
from atlas.modules.marketplace.dependencies import get_marketplace_store
from atlas.modules.marketplace.repository import InMemoryCollectionRepository
from atlas.modules.marketplace.service import MarketplaceStore

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class TickingClock:
    """Deterministic clock: every call advances one minute."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(minutes=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def repository() -> InMemoryCollectionRepository:
    return InMemoryCollectionRepository()


@pytest.fixture
def store(repository: InMemoryCollectionRepository, clock: TickingClock) -> MarketplaceStore:
    return MarketplaceStore(repository, clock=clock)


@pytest.fixture
async def client(store: MarketplaceStore) -> AsyncGenerator[AsyncClient]:
    app.dependency_overrides[get_marketplace_store] = lambda: store
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """In-memory SQLite with the storage_slots table, shared across sessions."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


# ── Sample sites ──────────────────────────────────────────────────────────────


@pytest.fixture
def make_site() -> Callable[..., Site]:
    def _make(**overrides) -> Site:
        data = {
            "id": 1,
            "name": "Doukkala Wheat Plot",
            "site_type": SiteType.FIELD,
            "area_hectares": 12.5,
            "crop_type": "Winter Wheat",
            "latest_ndvi": 0.68,
        }
        data.update(overrides)
        return Site(**data)

    return _make


@pytest.fixture
def field_site(make_site) -> Site:
    return make_site()


@pytest.fixture
def forest_site() -> Site:
    return Site(
        id=2,
        name="Maamora Cork Oak",
        site_type=SiteType.FOREST,
        area_hectares=150,
        forest_type="Cork Oak",
        fire_risk_level="low",
        latest_ndvi=0.8,
    )
