"""PostgreSQL implementation of IGroupRepository.

Stores one row per group with its parent id. Tree questions are answered by
the TreeStore through ``get_by_id`` and the bulk ``list_children`` query;
this repository has no recursive SQL.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from groups.domain.aggregates import Group
from groups.domain.value_objects import Address, CategoryId, GroupId, GroupPrivacy
from groups.infrastructure.models import GroupModel
from groups.infrastructure.observability import (
    DefaultGroupRepositoryProbe,
    GroupRepositoryProbe,
)
from groups.ports.exceptions import ConflictRetryableError
from groups.ports.repositories import IGroupRepository
from groups.ports.types import GroupFilter, Page, PageRequest


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class GroupRepository(IGroupRepository):
    """Repository for Group aggregates backed by the groups table."""

    def __init__(
        self,
        session: AsyncSession,
        probe: GroupRepositoryProbe | None = None,
    ) -> None:
        """Initialize repository with database session.

        Args:
            session: AsyncSession from FastAPI dependency injection
            probe: Optional domain probe for observability
        """
        self._session = session
        self._probe = probe or DefaultGroupRepositoryProbe()

    async def save(self, group: Group) -> None:
        """Insert or update a group row.

        ``group.version`` must match the stored version; on success it is
        advanced to the new stored version.

        Args:
            group: The Group aggregate to persist

        Raises:
            ConflictRetryableError: If another writer changed the row since
                the aggregate was loaded
        """
        stmt = select(GroupModel).where(GroupModel.id == group.id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model:
            if model.version != group.version:
                self._probe.version_conflict(group.id.value, group.version, model.version)
                raise ConflictRetryableError(
                    f"Group {group.id} was changed concurrently",
                    group_id=group.id.value,
                    operation="save",
                )
            model.name = group.name
            model.details = group.details
            model.meta_data = group.meta_data
            model.privacy = group.privacy.value if group.privacy else None
            model.category_id = group.category_id.value
            model.parent_id = group.parent_id.value if group.parent_id else None
            model.address = group.address.as_dict() if group.address else None
            model.updated_at = group.updated_at
        else:
            model = GroupModel(
                id=group.id.value,
                name=group.name,
                details=group.details,
                meta_data=group.meta_data,
                privacy=group.privacy.value if group.privacy else None,
                category_id=group.category_id.value,
                parent_id=group.parent_id.value if group.parent_id else None,
                address=group.address.as_dict() if group.address else None,
                created_at=group.created_at,
                updated_at=group.updated_at,
            )
            self._session.add(model)

        try:
            await self._session.flush()
        except StaleDataError as e:
            raise ConflictRetryableError(
                f"Group {group.id} was changed concurrently",
                group_id=group.id.value,
                operation="save",
            ) from e

        group.version = model.version
        self._probe.group_saved(group.id.value, model.version)

    async def get_by_id(self, group_id: GroupId) -> Group | None:
        """Fetch a group by id.

        Args:
            group_id: The unique identifier of the group

        Returns:
            The Group aggregate, or None if not found
        """
        stmt = select(GroupModel).where(GroupModel.id == group_id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            self._probe.group_not_found(group_id.value)
            return None
        return self._to_domain(model)

    async def get_many(self, group_ids: set[GroupId]) -> list[Group]:
        """Fetch every group whose id is in the set, ordered by name."""
        if not group_ids:
            return []
        stmt = (
            select(GroupModel)
            .where(GroupModel.id.in_([g.value for g in group_ids]))
            .order_by(GroupModel.name, GroupModel.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def list_children(self, parent_ids: set[GroupId]) -> list[Group]:
        """Fetch the direct children of every group in the set."""
        if not parent_ids:
            return []
        stmt = (
            select(GroupModel)
            .where(GroupModel.parent_id.in_([p.value for p in parent_ids]))
            .order_by(GroupModel.name, GroupModel.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def find(self, criteria: GroupFilter, page: PageRequest) -> Page[Group]:
        """Search groups by name substring, category and id allow-list."""
        conditions = []
        if criteria.name_contains:
            pattern = f"%{_escape_like(criteria.name_contains)}%"
            conditions.append(GroupModel.name.ilike(pattern, escape="\\"))
        if criteria.category_ids is not None:
            conditions.append(
                GroupModel.category_id.in_([c.value for c in criteria.category_ids])
            )
        if criteria.restrict_to_ids is not None:
            conditions.append(
                GroupModel.id.in_([g.value for g in criteria.restrict_to_ids])
            )

        count_stmt = select(func.count()).select_from(GroupModel).where(*conditions)
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            select(GroupModel)
            .where(*conditions)
            .order_by(GroupModel.name, GroupModel.id)
            .offset(page.skip)
            .limit(page.limit)
        )
        result = await self._session.execute(stmt)
        items = [self._to_domain(model) for model in result.scalars().all()]
        return Page(items=items, total=total, skip=page.skip, limit=page.limit)

    async def count(self) -> int:
        """Count all groups."""
        stmt = select(func.count()).select_from(GroupModel)
        return (await self._session.execute(stmt)).scalar_one()

    async def exists_by_name(self, name: str) -> bool:
        """Check whether any group has exactly this name."""
        stmt = select(GroupModel.id).where(GroupModel.name == name).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def delete(self, group: Group) -> bool:
        """Delete a group row.

        Args:
            group: The Group aggregate to delete

        Returns:
            True if deleted, False if not found
        """
        stmt = select(GroupModel).where(GroupModel.id == group.id.value)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return False

        await self._session.delete(model)
        try:
            await self._session.flush()
        except StaleDataError as e:
            raise ConflictRetryableError(
                f"Group {group.id} was changed concurrently",
                group_id=group.id.value,
                operation="delete",
            ) from e

        self._probe.group_deleted(group.id.value)
        return True

    async def serialize_structural_changes(self) -> None:
        """Run the current transaction at SERIALIZABLE isolation.

        Must be called before the first statement of the transaction.
        """
        await self._session.connection(
            execution_options={"isolation_level": "SERIALIZABLE"}
        )

    async def pin_snapshot(self) -> None:
        """Run the current transaction at REPEATABLE READ isolation.

        Every statement then reads the snapshot taken at the first one, so
        a multi-query read never sees half of a concurrent structural change.
        """
        await self._session.connection(
            execution_options={"isolation_level": "REPEATABLE READ"}
        )

    def _to_domain(self, model: GroupModel) -> Group:
        """Convert a GroupModel to a Group domain aggregate."""
        return Group(
            id=GroupId(value=model.id),
            name=model.name,
            category_id=CategoryId(value=model.category_id),
            parent_id=GroupId(value=model.parent_id) if model.parent_id else None,
            created_at=model.created_at,
            updated_at=model.updated_at,
            privacy=GroupPrivacy(model.privacy) if model.privacy else None,
            details=model.details,
            meta_data=model.meta_data,
            address=Address.from_dict(model.address) if model.address else None,
            version=model.version,
        )
