"""Database dependency injection for FastAPI.

Two lazily created engines. The write engine backs the request session that
the group services use for mutations and snapshot reads alike. The read
engine backs the event and category stores, which open their own short
sessions. Each engine comes with one cached sessionmaker.
"""

from __future__ import annotations

import threading
from typing import AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_read_engine, create_write_engine
from infrastructure.observability import DefaultDatabaseProbe
from infrastructure.settings import DatabaseSettings, get_database_settings

_probe = DefaultDatabaseProbe()

_factories: dict[str, Callable[[DatabaseSettings], AsyncEngine]] = {
    "write": create_write_engine,
    "read": create_read_engine,
}
_engines: dict[str, AsyncEngine] = {}
_sessionmakers: dict[str, async_sessionmaker[AsyncSession]] = {}

_engine_lock = threading.Lock()


def _engine_for(role: str) -> AsyncEngine:
    """Create the engine for ``role`` on first use (double-checked locking)."""
    engine = _engines.get(role)
    if engine is None:
        with _engine_lock:
            engine = _engines.get(role)
            if engine is None:
                settings = get_database_settings()
                engine = _factories[role](settings)
                _sessionmakers[role] = async_sessionmaker(
                    engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _engines[role] = engine
                _probe.engine_created(role, settings.host, settings.database)
    return engine


def _sessionmaker_for(role: str) -> async_sessionmaker[AsyncSession]:
    _engine_for(role)
    return _sessionmakers[role]


def get_write_engine() -> AsyncEngine:
    """Get the write database engine (singleton)."""
    return _engine_for("write")


def get_read_engine() -> AsyncEngine:
    """Get the read database engine (singleton)."""
    return _engine_for("read")


async def get_write_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide the request session for group services (FastAPI dependency).

    The session does NOT auto-commit. Application services own the
    transaction boundary with `async with session.begin()`.

    Yields:
        AsyncSession bound to the write engine
    """
    async with _sessionmaker_for("write")() as session:
        yield session


def get_read_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the read sessionmaker (singleton).

    Used by adapters that open their own short-lived sessions outside the
    request session, such as the event and category stores.
    """
    return _sessionmaker_for("read")


async def close_database_connections() -> None:
    """Dispose every created engine.

    Called on application shutdown. Engines are created again on next use.
    """
    for role in list(_factories):
        engine = _engines.pop(role, None)
        _sessionmakers.pop(role, None)
        if engine is not None:
            await engine.dispose()
            _probe.engine_disposed(role)
