"""Pytest configuration for integration tests.

These tests need a running PostgreSQL (TEST_DATABASE_URL) and are only
collected with ``-m integration``. Each test gets a freshly created schema.
"""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from shipproof.db import to_async_url
from shipproof.db.models import Base


@pytest.fixture
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a schema created for this test only."""
    engine = create_async_engine(to_async_url(database_url), poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
