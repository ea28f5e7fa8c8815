"""Shipproof API service.

FastAPI application exposing shipments, proof video upload and share links.
The app factory makes configured instances for tests and deployment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shipproof.api.middleware import (
    APIKeyAuthMiddleware,
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
)
from shipproof.api.routers import share_links_router, shipments_router, videos_router
from shipproof.db import close_engine, get_async_session

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from shipproof.core.config import Settings

logger = logging.getLogger(__name__)

API_TITLE = "Shipproof API"
API_DESCRIPTION = """
Chain-of-custody proof for shipments.

## Namespaces

- **/api/shipments** - Shipment lifecycle (CREATED -> RECORDING -> PROCESSING -> SEALED)
- **/api/videos** - Proof video upload (seals the shipment) and lookup
- **/api/share-links** - Time-limited share links; `POST /api/share-links/validate` is public

Authenticate with an `X-API-Key` header or `Authorization: Bearer <key>`.
"""


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Settings for this instance. When omitted, routes fall back
            to get_settings() on first use.

    Returns:
        Configured FastAPI application.

    Example:
        app = create_app()

        # For testing
        app = create_app(test_settings)
        app.dependency_overrides[get_db_session] = fake_session
    """
    version = settings.app_version if settings else "0.1.0"

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=_lifespan,
    )

    app.state.settings = settings
    app.state.storage = None

    _add_middleware(app, settings)
    _include_routers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Liveness check for container orchestration."""
        return {"status": "healthy"}

    logger.info("Shipproof API application created (version=%s)", version)

    return app


def _add_middleware(app: FastAPI, settings: Settings | None) -> None:
    """Add middleware; the last one added is the outermost."""
    app.add_middleware(APIKeyAuthMiddleware, session_factory=get_async_session)

    # Sits outside auth so authentication failures are rendered too
    app.add_middleware(ErrorHandlerMiddleware)

    # Outermost, so the request ID is set before errors are rendered and is
    # added to error responses as well
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = ["http://localhost:3000", "http://localhost:8000"]
    if settings and settings.is_production:
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def _include_routers(app: FastAPI) -> None:
    app.include_router(shipments_router, prefix="/api")
    app.include_router(videos_router, prefix="/api")
    app.include_router(share_links_router, prefix="/api")
