"""MembershipIndex: who belongs to which group, with which role.

Every query that takes group ids takes a *set* and is answered by one bulk
repository call, so a whole subtree costs one round trip.
"""

from __future__ import annotations

from groups.domain.value_objects import ContactId, GroupId, GroupMembership, GroupRole
from groups.ports.exceptions import MembershipNotFoundError
from groups.ports.repositories import IMembershipRepository


class MembershipIndex:
    """Query and maintain membership rows."""

    def __init__(self, membership_repository: IMembershipRepository):
        self._memberships = membership_repository

    async def members_of(self, group_ids: set[GroupId]) -> list[GroupMembership]:
        """Every membership row of every group in the set."""
        if not group_ids:
            return []
        return await self._memberships.list_for_groups(group_ids)

    async def leaders_of(self, group_id: GroupId) -> list[ContactId]:
        """Contact ids holding the Leader role at exactly this group."""
        rows = await self._memberships.list_for_groups({group_id})
        return sorted(
            (row.contact_id for row in rows if row.is_leader()),
            key=lambda contact_id: contact_id.value,
        )

    async def count_of(self, group_ids: set[GroupId]) -> int:
        """Number of membership rows across the set.

        A contact belonging to two groups of the set counts twice, once per
        membership.
        """
        if not group_ids:
            return 0
        return await self._memberships.count_for_groups(group_ids)

    async def leader_group_ids(
        self, contact_id: ContactId, group_ids: set[GroupId]
    ) -> set[GroupId]:
        """The groups of the set where the contact is a Leader."""
        if not group_ids:
            return set()
        return await self._memberships.leader_group_ids(contact_id, group_ids)

    async def group_ids_for(
        self, contact_id: ContactId, role: GroupRole | None = None
    ) -> set[GroupId]:
        """Groups the contact belongs to, optionally only with a given role."""
        roles = await self._memberships.group_ids_for_contact(contact_id)
        return {
            group_id
            for group_id, held in roles.items()
            if role is None or held == role
        }

    async def add(self, membership: GroupMembership) -> None:
        """Insert a row; the store's key rejects duplicates."""
        await self._memberships.add(membership)

    async def change_role(
        self, group_id: GroupId, contact_id: ContactId, role: GroupRole
    ) -> GroupMembership:
        """Replace the role of an existing row.

        Raises:
            MembershipNotFoundError: If the contact is not a member
        """
        updated = await self._memberships.update_role(group_id, contact_id, role)
        if not updated:
            raise MembershipNotFoundError(
                f"Contact {contact_id} is not a member of group {group_id}",
                group_id=group_id.value,
                operation="change_role",
            )
        return GroupMembership(group_id=group_id, contact_id=contact_id, role=role)

    async def remove(self, group_id: GroupId, contact_id: ContactId) -> None:
        """Delete a row.

        Raises:
            MembershipNotFoundError: If the contact is not a member
        """
        removed = await self._memberships.remove(group_id, contact_id)
        if not removed:
            raise MembershipNotFoundError(
                f"Contact {contact_id} is not a member of group {group_id}",
                group_id=group_id.value,
                operation="remove_member",
            )

    async def remove_group(self, group_id: GroupId) -> int:
        """Delete every row of a group. Returns the number removed."""
        return await self._memberships.remove_all_for_group(group_id)
