"""Membership request aggregate for the groups context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from groups.domain.value_objects import (
    ContactId,
    GeoPoint,
    GroupId,
    MembershipRequestId,
)


@dataclass(frozen=True)
class GroupMembershipRequest:
    """A contact's pending request to join a group.

    Requests are created on submission and deleted when a leader approves or
    denies them; they are never edited in between, hence frozen.

    ``distance_km`` is informational. It is stored and shown to approvers
    but does not rank or auto-approve anything.
    """

    id: MembershipRequestId
    group_id: GroupId
    contact_id: ContactId
    submitted_at: datetime
    distance_km: Optional[float] = None

    def __post_init__(self) -> None:
        if self.distance_km is not None and self.distance_km < 0:
            raise ValueError("distance_km cannot be negative")

    @classmethod
    def submit(
        cls,
        group_id: GroupId,
        contact_id: ContactId,
        origin: GeoPoint | None = None,
        destination: GeoPoint | None = None,
    ) -> "GroupMembershipRequest":
        """Factory method for a new request.

        The distance is computed only when both the requester's location and
        the group's location are known.

        Args:
            group_id: Group the contact wants to join
            contact_id: Requesting contact
            origin: Requester's location, if supplied
            destination: Group's location, if it has an address

        Returns:
            A new GroupMembershipRequest
        """
        distance = None
        if origin is not None and destination is not None:
            distance = round(origin.distance_km(destination), 3)
        return cls(
            id=MembershipRequestId.generate(),
            group_id=group_id,
            contact_id=contact_id,
            submitted_at=datetime.now(UTC),
            distance_km=distance,
        )
