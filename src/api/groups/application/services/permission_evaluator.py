"""PermissionEvaluator: inherited Leader rights along the ancestor chain."""

from __future__ import annotations

from groups.application.observability import DefaultPermissionProbe, PermissionProbe
from groups.application.services.membership_index import MembershipIndex
from groups.application.services.tree_store import TreeStore
from groups.domain.value_objects import ContactId, GroupId
from groups.ports.exceptions import ForbiddenError


class PermissionEvaluator:
    """Decide whether a contact may modify a group.

    A contact may modify a group when it holds the Leader role at the group
    or at any of its ancestors. The chain comes from ``TreeStore.lineage``
    (the same walk used for cycle checks) and the Leader rows for the whole
    chain are fetched in one bulk query.
    """

    def __init__(
        self,
        tree_store: TreeStore,
        membership_index: MembershipIndex,
        probe: PermissionProbe | None = None,
    ):
        self._tree = tree_store
        self._memberships = membership_index
        self._probe = probe or DefaultPermissionProbe()

    async def can_modify(
        self,
        contact_id: ContactId | None,
        group_id: GroupId,
        *,
        seed_mode: bool = False,
    ) -> bool:
        """Check whether the contact may modify the group.

        Args:
            contact_id: Acting contact; None always yields False
            group_id: Target group
            seed_mode: Explicit bypass for initial data population only

        Returns:
            True on the first Leader row found, nearest group first

        Raises:
            GroupNotFoundError: If the group does not resolve
        """
        if seed_mode:
            self._probe.seed_bypass_used(group_id=group_id.value)
            return True
        if contact_id is None:
            self._probe.permission_denied(contact_id=None, group_id=group_id.value)
            return False

        chain = await self._tree.lineage(group_id)
        led = await self._memberships.leader_group_ids(
            contact_id, {node.id for node in chain}
        )
        for node in chain:
            if node.id in led:
                self._probe.permission_granted(
                    contact_id=contact_id.value,
                    group_id=group_id.value,
                    granting_group_id=node.id.value,
                )
                return True

        self._probe.permission_denied(
            contact_id=contact_id.value, group_id=group_id.value
        )
        return False

    async def assert_can_modify(
        self,
        contact_id: ContactId | None,
        group_id: GroupId,
        *,
        operation: str = "modify",
        seed_mode: bool = False,
    ) -> None:
        """Same check as ``can_modify`` but raises instead of returning False.

        Raises:
            ForbiddenError: If the contact holds no Leader row on the chain
            GroupNotFoundError: If the group does not resolve
        """
        if not await self.can_modify(contact_id, group_id, seed_mode=seed_mode):
            who = contact_id.value if contact_id is not None else "anonymous caller"
            raise ForbiddenError(
                f"{who} may not {operation} group {group_id}",
                group_id=group_id.value,
                operation=operation,
            )
