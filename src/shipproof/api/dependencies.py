"""FastAPI dependencies shared by the routers.

Tests replace these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator  # noqa: TC003
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

# NOTE: needed at runtime for dependency return type resolution
from shipproof.core.config import Settings  # noqa: TC001
from shipproof.services.storage import ObjectStoreClient  # noqa: TC001


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Database session for one request."""
    from shipproof.db import get_async_session

    async with get_async_session() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, else the process-wide settings."""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        from shipproof.core.settings import get_settings

        settings = get_settings()
    return settings


def get_storage_client(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ObjectStoreClient:
    """Object store client, built once per application."""
    client = getattr(request.app.state, "storage", None)
    if client is None:
        client = ObjectStoreClient.from_settings(settings.s3)
        request.app.state.storage = client
    return client


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
StorageClient = Annotated[ObjectStoreClient, Depends(get_storage_client)]
