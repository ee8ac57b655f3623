from __future__ import annotations

import logging
from collections.abc import AsyncGenerator  # noqa: TC003
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carmarket.config import settings
from carmarket.database import create_tables
from carmarket.routers import auth, favorites, health, images, listings, profile
from carmarket.services.identity_client import IdentityClient
from carmarket.services.query_cache import QueryCache
from carmarket.services.storage_client import StorageClient
from carmarket.utils.exceptions import ListingValidationError, MarketplaceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Import models so Base.metadata knows about them
    import carmarket.models  # noqa: F401

    if settings.database_url.startswith("sqlite"):
        create_tables()

    app.state.query_cache = QueryCache(
        ttl_seconds=settings.query_cache_ttl_seconds,
        max_entries=settings.query_cache_max_entries,
    )
    async with StorageClient() as storage, IdentityClient() as identity:
        app.state.storage = storage
        app.state.identity = identity
        yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    body: dict = {"detail": str(exc), "retryable": exc.retryable}
    if isinstance(exc, ListingValidationError):
        body["field"] = exc.field
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=body)


app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(auth.router, prefix=settings.api_prefix, tags=["auth"])
app.include_router(profile.router, prefix=settings.api_prefix, tags=["profile"])
app.include_router(listings.router, prefix=settings.api_prefix, tags=["listings"])
app.include_router(images.router, prefix=settings.api_prefix, tags=["images"])
app.include_router(favorites.router, prefix=settings.api_prefix, tags=["favorites"])
