"""Repository protocols (ports) for the groups bounded context.

Repository protocols define the persistence boundary the TreeStore and the
MembershipIndex depend on: point lookup, bulk lookup by id set, insert,
update and delete. Ancestry questions are answered by the TreeStore through
repeated lookups, so no store needs a native hierarchy feature.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from groups.domain.aggregates import Group, GroupMembershipRequest
from groups.domain.value_objects import (
    ContactId,
    GroupId,
    GroupMembership,
    GroupRole,
    MembershipRequestId,
)
from groups.ports.types import GroupFilter, Page, PageRequest


@runtime_checkable
class IGroupRepository(Protocol):
    """Repository for Group aggregate persistence.

    Owns the canonical group records and their parent links.
    """

    async def save(self, group: Group) -> None:
        """Insert a new group or update an existing one.

        Advances ``group.version`` on success.

        Raises:
            ConflictRetryableError: If the stored version moved on since the
                group was read
        """
        ...

    async def get_by_id(self, group_id: GroupId) -> Group | None:
        """Retrieve a group by its id, or None."""
        ...

    async def get_many(self, group_ids: set[GroupId]) -> list[Group]:
        """Retrieve every group whose id is in the set (missing ids skipped)."""
        ...

    async def list_children(self, parent_ids: set[GroupId]) -> list[Group]:
        """Retrieve the direct children of every group in the set."""
        ...

    async def find(self, criteria: GroupFilter, page: PageRequest) -> Page[Group]:
        """Search groups, ordered by name."""
        ...

    async def count(self) -> int:
        """Count all groups."""
        ...

    async def exists_by_name(self, name: str) -> bool:
        """Check whether any group has exactly this name."""
        ...

    async def delete(self, group: Group) -> bool:
        """Delete a group record.

        Returns:
            True if deleted, False if not found
        """
        ...

    async def serialize_structural_changes(self) -> None:
        """Make the current transaction serializable.

        Must be the first call in a structural mutation's transaction so the
        ancestor walk and the parent-link write commit atomically.
        """
        ...

    async def pin_snapshot(self) -> None:
        """Make every read in the current transaction see one snapshot."""
        ...


@runtime_checkable
class IMembershipRepository(Protocol):
    """Repository for membership rows.

    Uniqueness of (group, contact) is enforced by the store's key.
    """

    async def add(self, membership: GroupMembership) -> None:
        """Insert a membership row.

        Raises:
            DuplicateMembershipError: If the contact already belongs to the group
        """
        ...

    async def get(
        self, group_id: GroupId, contact_id: ContactId
    ) -> GroupMembership | None:
        """Retrieve one membership row, or None."""
        ...

    async def update_role(
        self, group_id: GroupId, contact_id: ContactId, role: GroupRole
    ) -> bool:
        """Change a row's role. Returns False if the row does not exist."""
        ...

    async def remove(self, group_id: GroupId, contact_id: ContactId) -> bool:
        """Delete a row. Returns False if the row does not exist."""
        ...

    async def remove_all_for_group(self, group_id: GroupId) -> int:
        """Delete every row of a group. Returns the number removed."""
        ...

    async def list_for_groups(self, group_ids: set[GroupId]) -> list[GroupMembership]:
        """All rows whose group is in the set."""
        ...

    async def count_for_groups(self, group_ids: set[GroupId]) -> int:
        """Number of rows whose group is in the set."""
        ...

    async def leader_group_ids(
        self, contact_id: ContactId, group_ids: set[GroupId]
    ) -> set[GroupId]:
        """Subset of ``group_ids`` where the contact holds the Leader role."""
        ...

    async def group_ids_for_contact(
        self, contact_id: ContactId
    ) -> dict[GroupId, GroupRole]:
        """Every group the contact belongs to, with the role held."""
        ...


@runtime_checkable
class IMembershipRequestRepository(Protocol):
    """Repository for pending membership requests."""

    async def add(self, request: GroupMembershipRequest) -> None:
        """Insert a request.

        Raises:
            DuplicateMembershipRequestError: If one is already pending for
                the same (group, contact)
        """
        ...

    async def get_by_id(
        self, request_id: MembershipRequestId
    ) -> GroupMembershipRequest | None:
        """Retrieve a request by id, or None."""
        ...

    async def get_pending(
        self, group_id: GroupId, contact_id: ContactId
    ) -> GroupMembershipRequest | None:
        """Retrieve the pending request of a contact for a group, or None."""
        ...

    async def list_for_group(self, group_id: GroupId) -> list[GroupMembershipRequest]:
        """Pending requests for a group, oldest first."""
        ...

    async def delete(self, request: GroupMembershipRequest) -> bool:
        """Delete (consume) a request. Returns False if it was already gone."""
        ...

    async def delete_all_for_group(self, group_id: GroupId) -> int:
        """Delete every pending request of a group. Returns the number removed."""
        ...
