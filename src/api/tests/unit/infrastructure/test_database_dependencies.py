"""Unit tests for database dependency injection.

Engines are lazily created singletons; nothing here opens a connection.
"""

import pytest
import pytest_asyncio
from unittest.mock import MagicMock, patch
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from infrastructure.database import dependencies
from infrastructure.database.dependencies import (
    close_database_connections,
    get_read_engine,
    get_read_sessionmaker,
    get_write_engine,
    get_write_session,
)


@pytest_asyncio.fixture(autouse=True)
async def fresh_engines():
    """Start and end every test without cached engines."""
    await close_database_connections()
    yield
    await close_database_connections()


@pytest.fixture
def probe():
    mock_probe = MagicMock()
    with patch.object(dependencies, "_probe", mock_probe):
        yield mock_probe


@pytest.mark.asyncio
async def test_engines_are_singletons():
    assert get_write_engine() is get_write_engine()
    assert get_read_engine() is get_read_engine()
    assert get_write_engine() is not get_read_engine()
    assert isinstance(get_write_engine(), AsyncEngine)


@pytest.mark.asyncio
async def test_engine_creation_is_reported_once(probe):
    get_write_engine()
    get_write_engine()
    get_read_engine()

    roles = [c.args[0] for c in probe.engine_created.call_args_list]
    assert roles == ["write", "read"]


@pytest.mark.asyncio
async def test_write_session_is_bound_to_write_engine():
    async for session in get_write_session():
        assert isinstance(session, AsyncSession)
        assert session.bind.sync_engine is get_write_engine().sync_engine


@pytest.mark.asyncio
async def test_read_sessionmaker_uses_read_engine():
    maker = get_read_sessionmaker()

    async with maker() as session:
        assert session.bind.sync_engine is get_read_engine().sync_engine


@pytest.mark.asyncio
async def test_close_disposes_and_resets(probe):
    write_engine = get_write_engine()
    read_engine = get_read_engine()

    await close_database_connections()

    disposed = [c.args[0] for c in probe.engine_disposed.call_args_list]
    assert disposed == ["write", "read"]
    assert get_write_engine() is not write_engine
    assert get_read_engine() is not read_engine


@pytest.mark.asyncio
async def test_close_without_engines_is_a_no_op(probe):
    await close_database_connections()

    probe.engine_disposed.assert_not_called()
