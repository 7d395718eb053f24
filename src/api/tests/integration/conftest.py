"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance. Connection settings
come from the usual GROUPS_DB_* environment variables.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import groups.infrastructure.models  # noqa: F401  (registers tables on Base)
from infrastructure.database.engines import create_write_engine
from infrastructure.database.models import Base
from infrastructure.settings import DatabaseSettings

GROUP_TABLES = (
    "event_attendance",
    "group_events",
    "group_categories",
    "group_membership_requests",
    "group_memberships",
    "groups",
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires database)",
    )


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests.

    Override with environment variables:
        GROUPS_DB_HOST, GROUPS_DB_PORT, GROUPS_DB_PASSWORD, etc.
    """
    return DatabaseSettings()


@pytest_asyncio.fixture
async def engine(
    integration_db_settings: DatabaseSettings,
) -> AsyncGenerator[AsyncEngine, None]:
    """Engine over a schema that exists and holds no group data."""
    engine = create_write_engine(integration_db_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(f"TRUNCATE {', '.join(GROUP_TABLES)}"))

    yield engine

    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE {', '.join(GROUP_TABLES)}"))
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Provide a session factory for tests that need several sessions."""
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session for integration tests."""
    async with session_factory() as session:
        yield session
