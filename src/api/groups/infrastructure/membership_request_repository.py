"""PostgreSQL implementation of IMembershipRequestRepository."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from groups.domain.aggregates import GroupMembershipRequest
from groups.domain.value_objects import ContactId, GroupId, MembershipRequestId
from groups.infrastructure.models import GroupMembershipRequestModel
from groups.infrastructure.observability import (
    DefaultMembershipRepositoryProbe,
    MembershipRepositoryProbe,
)
from groups.ports.exceptions import DuplicateMembershipRequestError
from groups.ports.repositories import IMembershipRequestRepository


class MembershipRequestRepository(IMembershipRequestRepository):
    """Repository for pending membership requests."""

    def __init__(
        self,
        session: AsyncSession,
        probe: MembershipRepositoryProbe | None = None,
    ) -> None:
        self._session = session
        self._probe = probe or DefaultMembershipRepositoryProbe()

    async def add(self, request: GroupMembershipRequest) -> None:
        """Insert a request.

        Raises:
            DuplicateMembershipRequestError: If one is already pending for
                the same (group, contact)
        """
        self._session.add(
            GroupMembershipRequestModel(
                id=request.id.value,
                group_id=request.group_id.value,
                contact_id=request.contact_id.value,
                distance_km=request.distance_km,
                submitted_at=request.submitted_at,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            if "uq_group_membership_requests_group_contact" not in str(e):
                raise
            self._probe.duplicate_request(
                request.group_id.value, request.contact_id.value
            )
            raise DuplicateMembershipRequestError(
                f"Contact {request.contact_id} already asked to join group "
                f"{request.group_id}",
                group_id=request.group_id.value,
                operation="submit_request",
            ) from e

    async def get_by_id(
        self, request_id: MembershipRequestId
    ) -> GroupMembershipRequest | None:
        """Retrieve a request by id, or None."""
        stmt = select(GroupMembershipRequestModel).where(
            GroupMembershipRequestModel.id == request_id.value
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    async def get_pending(
        self, group_id: GroupId, contact_id: ContactId
    ) -> GroupMembershipRequest | None:
        """Retrieve the pending request of a contact for a group, or None."""
        stmt = select(GroupMembershipRequestModel).where(
            GroupMembershipRequestModel.group_id == group_id.value,
            GroupMembershipRequestModel.contact_id == contact_id.value,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    async def list_for_group(self, group_id: GroupId) -> list[GroupMembershipRequest]:
        """Pending requests for a group, oldest first."""
        stmt = (
            select(GroupMembershipRequestModel)
            .where(GroupMembershipRequestModel.group_id == group_id.value)
            .order_by(
                GroupMembershipRequestModel.submitted_at,
                GroupMembershipRequestModel.id,
            )
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def delete(self, request: GroupMembershipRequest) -> bool:
        """Delete (consume) a request. Returns False if it was already gone."""
        stmt = delete(GroupMembershipRequestModel).where(
            GroupMembershipRequestModel.id == request.id.value
        )
        result = await self._session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def delete_all_for_group(self, group_id: GroupId) -> int:
        """Delete every pending request of a group. Returns the number removed."""
        stmt = delete(GroupMembershipRequestModel).where(
            GroupMembershipRequestModel.group_id == group_id.value
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    def _to_domain(model: GroupMembershipRequestModel) -> GroupMembershipRequest:
        return GroupMembershipRequest(
            id=MembershipRequestId(value=model.id),
            group_id=GroupId(value=model.group_id),
            contact_id=ContactId(value=model.contact_id),
            submitted_at=model.submitted_at,
            distance_km=model.distance_km,
        )
