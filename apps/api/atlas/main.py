from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from atlas.core.config import settings
from atlas.core.errors import (
    StorageUnavailableError,
    global_exception_handler,
    http_exception_handler,
    storage_unavailable_handler,
)
from atlas.core.sentry import init_sentry

import atlas.models  # noqa: F401  registers all models at startup

from atlas.modules.investor_score.router import router as investor_score_router
from atlas.modules.marketplace.dependencies import get_marketplace_store
from atlas.modules.marketplace.router import router as marketplace_router
from atlas.modules.marketplace.service import MarketplaceStore

# ── Sentry, must be initialised BEFORE FastAPI app is created ────────────────
init_sentry(
    settings.SENTRY_DSN,
    environment=settings.SENTRY_ENVIRONMENT,
    release=settings.APP_VERSION,
    storage_backend=settings.MARKETPLACE_STORAGE_BACKEND,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    logger.info(
        "Starting Atlas API",
        env=settings.APP_ENV,
        storage_backend=settings.MARKETPLACE_STORAGE_BACKEND,
    )
    yield
    logger.info("Shutting down Atlas API")
    if settings.MARKETPLACE_STORAGE_BACKEND == "database":
        from atlas.core.database import engine

        await engine.dispose()


_is_prod = settings.APP_ENV == "production"

app = FastAPI(
    title="Atlas Marketplace API",
    description="Investor attractiveness scoring and marketplace for satellite-monitored farms and forests.",
    version="0.1.0",
    # Disable interactive docs in production, use /openapi.json directly if needed
    docs_url=None if _is_prod else "/docs",
    redoc_url=None if _is_prod else "/redoc",
    openapi_url=None if _is_prod else "/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StorageUnavailableError, storage_unavailable_handler)
app.add_exception_handler(Exception, global_exception_handler)


# ── X-API-Version response header ────────────────────────────────────────────


@app.middleware("http")
async def add_version_header(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["X-API-Version"] = "v1"
    return response


# ── Health check (root-level, not under /v1) ─────────────────────────────────


@app.get("/health")
async def health_check(store: MarketplaceStore = Depends(get_marketplace_store)) -> dict:
    """Checks that the marketplace storage slots are readable."""
    checks: dict[str, dict] = {}

    try:
        listings = await store.list_active()
        checks["storage"] = {"status": "healthy", "active_listings": len(listings)}
    except StorageUnavailableError as exc:
        checks["storage"] = {"status": "unhealthy", "error": str(exc)}

    overall = (
        "healthy"
        if all(c["status"] == "healthy" for c in checks.values())
        else "degraded"
    )
    return {"status": overall, "service": "atlas-api", "checks": checks}


# ── /v1 versioned router ──────────────────────────────────────────────────────

api_v1 = APIRouter(prefix="/v1")

api_v1.include_router(investor_score_router)
api_v1.include_router(marketplace_router)

app.include_router(api_v1)
