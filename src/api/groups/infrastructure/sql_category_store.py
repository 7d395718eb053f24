"""ICategoryStore over the category table owned by the category system."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from groups.domain.value_objects import CategoryId
from groups.infrastructure.bounded_call import bounded_call
from groups.infrastructure.models import GroupCategoryModel
from groups.infrastructure.observability import (
    DefaultExternalServiceProbe,
    ExternalServiceProbe,
)
from groups.ports.services import ICategoryStore


class SqlCategoryStore(ICategoryStore):
    """Read-only category name lookup."""

    SERVICE_NAME = "category_store"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 5.0,
        probe: ExternalServiceProbe | None = None,
    ):
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds
        self._probe = probe or DefaultExternalServiceProbe()

    async def names_for(self, category_ids: set[CategoryId]) -> dict[CategoryId, str]:
        """Names of the given categories; unknown ids are omitted."""
        if not category_ids:
            return {}
        stmt = select(GroupCategoryModel.id, GroupCategoryModel.name).where(
            GroupCategoryModel.id.in_([c.value for c in category_ids])
        )

        async def query() -> dict[CategoryId, str]:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return {CategoryId(value=cid): name for cid, name in result.all()}

        return await bounded_call(
            self.SERVICE_NAME, self._timeout_seconds, self._probe, query
        )
