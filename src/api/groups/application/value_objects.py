"""Application-layer value objects for the groups bounded context.

These are value objects specific to the application layer: the request's
acting contact, use-case commands and read-only view objects assembled by
the GroupService.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Final

from groups.domain.aggregates import Group
from groups.domain.value_objects import (
    Address,
    CategoryId,
    ContactId,
    GeoPoint,
    GroupId,
    GroupPrivacy,
)


class Unset:
    """Marker for "field not supplied" where None is a meaningful value."""

    _instance: Unset | None = None

    def __new__(cls) -> Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = Unset()


@dataclass(frozen=True)
class CurrentUser:
    """Represents the contact acting on the current request.

    Authentication happens upstream; by the time a request reaches this
    context the contact id is trusted. This is an application-layer concept
    (not domain) because it describes the request, not a business entity.
    """

    contact_id: ContactId


class ReadDepth(StrEnum):
    """How much of a group a read assembles."""

    SUMMARY = "summary"
    FULL = "full"


@dataclass(frozen=True)
class AttendanceSummary:
    """Attendance totals for a subtree over a time window.

    ``percentage`` is 100 x attendance / members and may exceed 100 when
    events draw more attendees than the subtree has members. It is 0.0 when
    the subtree has no members.
    """

    total_attendance: int
    total_members: int
    percentage: float

    @classmethod
    def compute(cls, total_attendance: int, total_members: int) -> AttendanceSummary:
        """Build a summary, defining the percentage as 0.0 for zero members."""
        if total_members == 0:
            percentage = 0.0
        else:
            percentage = 100.0 * total_attendance / total_members
        return cls(
            total_attendance=total_attendance,
            total_members=total_members,
            percentage=percentage,
        )

    @property
    def percentage_display(self) -> str:
        """Percentage with two decimals, e.g. ``"250.00"``."""
        return f"{self.percentage:.2f}"


@dataclass(frozen=True)
class Report:
    """An event listed on a group's detail view."""

    id: str
    name: str
    start_date: datetime
    group_id: GroupId
    category: str | None = None


@dataclass(frozen=True)
class GroupSummaryView:
    """Flat group record with resolved category and parent names."""

    group: Group
    category_name: str | None
    parent_name: str | None


@dataclass(frozen=True)
class GroupDetailView:
    """Summary plus the derived tree, membership and attendance data.

    Built only when every enrichment step succeeded.
    """

    summary: GroupSummaryView
    ancestor_ids: list[GroupId]
    descendant_ids: list[GroupId]
    attendance: AttendanceSummary
    leader_ids: list[ContactId]
    can_edit: bool
    reports: list[Report] = field(default_factory=list)
    window_start: datetime | None = None
    window_end: datetime | None = None


@dataclass(frozen=True)
class CreateGroupCommand:
    """Input for GroupService.create."""

    name: str
    category_id: CategoryId
    parent_id: GroupId | None = None
    privacy: GroupPrivacy | None = None
    details: str | None = None
    meta_data: str | None = None
    place_id: str | None = None


@dataclass(frozen=True)
class UpdateGroupCommand:
    """Input for GroupService.update.

    Fields left as UNSET are not touched. ``parent_id=None`` makes the group
    a root, which is why UNSET and None are distinct.
    """

    group_id: GroupId
    name: str | Unset = UNSET
    category_id: CategoryId | Unset = UNSET
    parent_id: GroupId | None | Unset = UNSET
    privacy: GroupPrivacy | None | Unset = UNSET
    details: str | None | Unset = UNSET
    meta_data: str | None | Unset = UNSET
    place_id: str | None | Unset = UNSET


@dataclass(frozen=True)
class MembershipRequestCommand:
    """Input for MembershipService.submit_request."""

    group_id: GroupId
    contact_id: ContactId
    origin: GeoPoint | None = None


def address_place_id(address: Address | None) -> str | None:
    """Place id of an address, or None."""
    return address.place_id if address is not None else None
