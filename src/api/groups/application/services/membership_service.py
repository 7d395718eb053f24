"""Membership application service for the groups bounded context.

Manages membership rows and the membership request lifecycle. Every change
to a group's membership is gated by the inherited Leader check; submitting a
request is open to any contact.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from groups.application.observability import (
    DefaultMembershipServiceProbe,
    MembershipServiceProbe,
)
from groups.application.services.membership_index import MembershipIndex
from groups.application.services.permission_evaluator import PermissionEvaluator
from groups.application.services.tree_store import TreeStore
from groups.application.value_objects import CurrentUser, MembershipRequestCommand
from groups.domain.aggregates import GroupMembershipRequest
from groups.domain.value_objects import (
    ContactId,
    GroupId,
    GroupMembership,
    GroupRole,
    MembershipRequestId,
)
from groups.ports.exceptions import (
    DuplicateMembershipError,
    DuplicateMembershipRequestError,
    MembershipRequestNotFoundError,
)
from groups.ports.repositories import IMembershipRequestRepository


class MembershipService:
    """Application service for memberships and membership requests.

    Manages database transactions.
    """

    def __init__(
        self,
        session: AsyncSession,
        tree_store: TreeStore,
        membership_index: MembershipIndex,
        permissions: PermissionEvaluator,
        request_repository: IMembershipRequestRepository,
        probe: MembershipServiceProbe | None = None,
    ):
        """Initialize MembershipService with dependencies.

        Args:
            session: Database session for transaction management
            tree_store: Resolves groups
            membership_index: Membership rows
            permissions: Inherited Leader checks
            request_repository: Pending membership requests
            probe: Optional domain probe for observability
        """
        self._session = session
        self._tree = tree_store
        self._memberships = membership_index
        self._permissions = permissions
        self._requests = request_repository
        self._probe = probe or DefaultMembershipServiceProbe()

    async def list_members(self, group_id: GroupId) -> list[GroupMembership]:
        """Membership rows of exactly this group.

        Raises:
            GroupNotFoundError: If the group does not exist
        """
        async with self._session.begin():
            await self._tree.get(group_id, operation="list_members")
            return await self._memberships.members_of({group_id})

    async def add_member(
        self,
        group_id: GroupId,
        contact_id: ContactId,
        role: GroupRole,
        actor: CurrentUser,
    ) -> GroupMembership:
        """Add a contact to a group.

        Raises:
            GroupNotFoundError: If the group does not exist
            ForbiddenError: If the actor may not modify the group
            DuplicateMembershipError: If the contact is already a member
        """
        membership = GroupMembership(group_id=group_id, contact_id=contact_id, role=role)
        async with self._session.begin():
            await self._permissions.assert_can_modify(
                actor.contact_id, group_id, operation="add_member"
            )
            await self._memberships.add(membership)

        self._probe.member_added(
            group_id=group_id.value, contact_id=contact_id.value, role=role.value
        )
        return membership

    async def change_role(
        self,
        group_id: GroupId,
        contact_id: ContactId,
        role: GroupRole,
        actor: CurrentUser,
    ) -> GroupMembership:
        """Change a member's role.

        Raises:
            ForbiddenError: If the actor may not modify the group
            MembershipNotFoundError: If the contact is not a member
        """
        async with self._session.begin():
            await self._permissions.assert_can_modify(
                actor.contact_id, group_id, operation="change_role"
            )
            membership = await self._memberships.change_role(group_id, contact_id, role)

        self._probe.member_role_changed(
            group_id=group_id.value, contact_id=contact_id.value, role=role.value
        )
        return membership

    async def remove_member(
        self,
        group_id: GroupId,
        contact_id: ContactId,
        actor: CurrentUser,
    ) -> None:
        """Remove a contact from a group.

        Raises:
            ForbiddenError: If the actor may not modify the group
            MembershipNotFoundError: If the contact is not a member
        """
        async with self._session.begin():
            await self._permissions.assert_can_modify(
                actor.contact_id, group_id, operation="remove_member"
            )
            await self._memberships.remove(group_id, contact_id)

        self._probe.member_removed(group_id=group_id.value, contact_id=contact_id.value)

    async def submit_request(
        self, command: MembershipRequestCommand
    ) -> GroupMembershipRequest:
        """Record a contact's request to join a group.

        The distance from the contact's location to the group's address is
        stored when both are known. It is informational only.

        Raises:
            GroupNotFoundError: If the group does not exist
            DuplicateMembershipError: If the contact is already a member
            DuplicateMembershipRequestError: If a request is already pending
        """
        async with self._session.begin():
            group = await self._tree.get(command.group_id, operation="submit_request")

            existing = await self._memberships.group_ids_for(command.contact_id)
            if group.id in existing:
                raise DuplicateMembershipError(
                    f"Contact {command.contact_id} is already a member of group {group.id}",
                    group_id=group.id.value,
                    operation="submit_request",
                )
            pending = await self._requests.get_pending(group.id, command.contact_id)
            if pending is not None:
                raise DuplicateMembershipRequestError(
                    f"Contact {command.contact_id} already asked to join group {group.id}",
                    group_id=group.id.value,
                    operation="submit_request",
                )

            request = GroupMembershipRequest.submit(
                group_id=group.id,
                contact_id=command.contact_id,
                origin=command.origin,
                destination=group.address.location if group.address else None,
            )
            await self._requests.add(request)

        self._probe.request_submitted(
            request_id=request.id.value,
            group_id=request.group_id.value,
            contact_id=request.contact_id.value,
            distance_km=request.distance_km,
        )
        return request

    async def list_requests(
        self, group_id: GroupId, actor: CurrentUser
    ) -> list[GroupMembershipRequest]:
        """Pending requests for a group, oldest first.

        Raises:
            ForbiddenError: If the actor may not modify the group
        """
        async with self._session.begin():
            await self._permissions.assert_can_modify(
                actor.contact_id, group_id, operation="list_requests"
            )
            return await self._requests.list_for_group(group_id)

    async def approve(
        self, request_id: MembershipRequestId, actor: CurrentUser
    ) -> GroupMembership:
        """Turn a request into a Member row and consume the request.

        Raises:
            MembershipRequestNotFoundError: If the request does not exist
            ForbiddenError: If the actor may not modify the group
            DuplicateMembershipError: If the contact became a member meanwhile
        """
        async with self._session.begin():
            request = await self._load_request(request_id, "approve_request")
            await self._permissions.assert_can_modify(
                actor.contact_id, request.group_id, operation="approve_request"
            )
            membership = GroupMembership(
                group_id=request.group_id,
                contact_id=request.contact_id,
                role=GroupRole.MEMBER,
            )
            await self._memberships.add(membership)
            await self._consume(request, "approve_request")

        self._probe.request_approved(
            request_id=request_id.value,
            group_id=request.group_id.value,
            contact_id=request.contact_id.value,
        )
        return membership

    async def deny(self, request_id: MembershipRequestId, actor: CurrentUser) -> None:
        """Consume a request without creating a membership.

        Raises:
            MembershipRequestNotFoundError: If the request does not exist
            ForbiddenError: If the actor may not modify the group
        """
        async with self._session.begin():
            request = await self._load_request(request_id, "deny_request")
            await self._permissions.assert_can_modify(
                actor.contact_id, request.group_id, operation="deny_request"
            )
            await self._consume(request, "deny_request")

        self._probe.request_denied(
            request_id=request_id.value,
            group_id=request.group_id.value,
            contact_id=request.contact_id.value,
        )

    async def _load_request(
        self, request_id: MembershipRequestId, operation: str
    ) -> GroupMembershipRequest:
        request = await self._requests.get_by_id(request_id)
        if request is None:
            raise MembershipRequestNotFoundError(
                f"Membership request {request_id} not found",
                operation=operation,
            )
        return request

    async def _consume(self, request: GroupMembershipRequest, operation: str) -> None:
        if not await self._requests.delete(request):
            raise MembershipRequestNotFoundError(
                f"Membership request {request.id} was already handled",
                group_id=request.group_id.value,
                operation=operation,
            )
