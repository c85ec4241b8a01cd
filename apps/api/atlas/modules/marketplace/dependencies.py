"""FastAPI dependencies for the marketplace store."""

from __future__ import annotations

import structlog

from atlas.core.config import settings
from atlas.modules.marketplace.repository import (
    CollectionRepository,
    InMemoryCollectionRepository,
    SqlCollectionRepository,
)
from atlas.modules.marketplace.service import MarketplaceStore

logger = structlog.get_logger()

_store: MarketplaceStore | None = None


def build_repository(backend: str) -> CollectionRepository:
    if backend == "memory":
        return InMemoryCollectionRepository()
    if backend == "database":
        from atlas.core.database import async_session_factory

        return SqlCollectionRepository(async_session_factory)
    raise ValueError(f"Unknown marketplace storage backend: {backend!r}")


def get_marketplace_store() -> MarketplaceStore:
    """One store per process, so its per-collection locks are shared by all requests."""
    global _store
    if _store is None:
        _store = MarketplaceStore(build_repository(settings.MARKETPLACE_STORAGE_BACKEND))
        logger.info("marketplace_store_ready", backend=settings.MARKETPLACE_STORAGE_BACKEND)
    return _store
