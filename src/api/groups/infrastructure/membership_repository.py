"""PostgreSQL implementation of IMembershipRepository."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from groups.domain.value_objects import ContactId, GroupId, GroupMembership, GroupRole
from groups.infrastructure.models import GroupMembershipModel
from groups.infrastructure.observability import (
    DefaultMembershipRepositoryProbe,
    MembershipRepositoryProbe,
)
from groups.ports.exceptions import DuplicateMembershipError
from groups.ports.repositories import IMembershipRepository
from infrastructure.database import is_unique_violation


class MembershipRepository(IMembershipRepository):
    """Repository for membership rows keyed by (group_id, contact_id)."""

    def __init__(
        self,
        session: AsyncSession,
        probe: MembershipRepositoryProbe | None = None,
    ) -> None:
        """Initialize repository with database session.

        Args:
            session: AsyncSession from FastAPI dependency injection
            probe: Optional domain probe for observability
        """
        self._session = session
        self._probe = probe or DefaultMembershipRepositoryProbe()

    async def add(self, membership: GroupMembership) -> None:
        """Insert a membership row.

        Raises:
            DuplicateMembershipError: If the contact already belongs to the group
        """
        group_id = membership.group_id.value
        contact_id = membership.contact_id.value

        existing = await self._find(group_id, contact_id)
        if existing is not None:
            self._probe.duplicate_membership(group_id, contact_id)
            raise DuplicateMembershipError(
                f"Contact {contact_id} is already a member of group {group_id}",
                group_id=group_id,
                operation="add_member",
            )

        self._session.add(
            GroupMembershipModel(
                group_id=group_id,
                contact_id=contact_id,
                role=membership.role.value,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            # Only a key clash from a concurrent insert means "already a member"
            if not is_unique_violation(e):
                raise
            self._probe.duplicate_membership(group_id, contact_id)
            raise DuplicateMembershipError(
                f"Contact {contact_id} is already a member of group {group_id}",
                group_id=group_id,
                operation="add_member",
            ) from e

    async def get(
        self, group_id: GroupId, contact_id: ContactId
    ) -> GroupMembership | None:
        """Retrieve one membership row, or None."""
        model = await self._find(group_id.value, contact_id.value)
        return self._to_domain(model) if model is not None else None

    async def update_role(
        self, group_id: GroupId, contact_id: ContactId, role: GroupRole
    ) -> bool:
        """Change a row's role. Returns False if the row does not exist."""
        model = await self._find(group_id.value, contact_id.value)
        if model is None:
            return False
        model.role = role.value
        await self._session.flush()
        return True

    async def remove(self, group_id: GroupId, contact_id: ContactId) -> bool:
        """Delete a row. Returns False if the row does not exist."""
        model = await self._find(group_id.value, contact_id.value)
        if model is None:
            return False
        await self._session.delete(model)
        await self._session.flush()
        return True

    async def remove_all_for_group(self, group_id: GroupId) -> int:
        """Delete every row of a group. Returns the number removed."""
        stmt = delete(GroupMembershipModel).where(
            GroupMembershipModel.group_id == group_id.value
        )
        result = await self._session.execute(stmt)
        count = result.rowcount or 0
        self._probe.memberships_purged(group_id.value, count)
        return count

    async def list_for_groups(self, group_ids: set[GroupId]) -> list[GroupMembership]:
        """All rows whose group is in the set."""
        if not group_ids:
            return []
        stmt = (
            select(GroupMembershipModel)
            .where(GroupMembershipModel.group_id.in_([g.value for g in group_ids]))
            .order_by(GroupMembershipModel.group_id, GroupMembershipModel.contact_id)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count_for_groups(self, group_ids: set[GroupId]) -> int:
        """Number of rows whose group is in the set."""
        if not group_ids:
            return 0
        stmt = (
            select(func.count())
            .select_from(GroupMembershipModel)
            .where(GroupMembershipModel.group_id.in_([g.value for g in group_ids]))
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def leader_group_ids(
        self, contact_id: ContactId, group_ids: set[GroupId]
    ) -> set[GroupId]:
        """Subset of ``group_ids`` where the contact holds the Leader role."""
        if not group_ids:
            return set()
        stmt = select(GroupMembershipModel.group_id).where(
            GroupMembershipModel.contact_id == contact_id.value,
            GroupMembershipModel.role == GroupRole.LEADER.value,
            GroupMembershipModel.group_id.in_([g.value for g in group_ids]),
        )
        result = await self._session.execute(stmt)
        return {GroupId(value=row) for row in result.scalars().all()}

    async def group_ids_for_contact(
        self, contact_id: ContactId
    ) -> dict[GroupId, GroupRole]:
        """Every group the contact belongs to, with the role held."""
        stmt = select(GroupMembershipModel.group_id, GroupMembershipModel.role).where(
            GroupMembershipModel.contact_id == contact_id.value
        )
        result = await self._session.execute(stmt)
        return {
            GroupId(value=group_id): GroupRole(role) for group_id, role in result.all()
        }

    async def _find(self, group_id: str, contact_id: str) -> GroupMembershipModel | None:
        stmt = select(GroupMembershipModel).where(
            GroupMembershipModel.group_id == group_id,
            GroupMembershipModel.contact_id == contact_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _to_domain(model: GroupMembershipModel) -> GroupMembership:
        return GroupMembership(
            group_id=GroupId(value=model.group_id),
            contact_id=ContactId(value=model.contact_id),
            role=GroupRole(model.role),
        )
