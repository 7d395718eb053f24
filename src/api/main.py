"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from groups.presentation import router as groups_router
from infrastructure.database.dependencies import (
    close_database_connections,
    get_read_engine,
)
from infrastructure.logging import configure_logging
from infrastructure.settings import get_settings
from infrastructure.version import __version__


@asynccontextmanager
async def groups_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - structlog configuration
    - Database engine lifecycle (created lazily, disposed on shutdown)
    """
    configure_logging(debug=get_settings().debug)

    yield

    await close_database_connections()


app = FastAPI(
    title="Group Hierarchy API",
    description="Hierarchical groups with inherited leadership and subtree reporting",
    version=__version__,
    lifespan=groups_lifespan,
)

# Include Groups bounded context routes
app.include_router(groups_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/db")
async def health_db() -> dict:
    """Check database connection health."""
    try:
        async with get_read_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok", "connected": True}
    except Exception as e:
        return {
            "status": "error",
            "connected": False,
            "error": str(e),
        }
