"""Pydantic models for group API requests and responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from groups.application.value_objects import (
    UNSET,
    CreateGroupCommand,
    GroupDetailView,
    GroupSummaryView,
    MembershipRequestCommand,
    Unset,
    UpdateGroupCommand,
)
from groups.domain.aggregates import GroupMembershipRequest
from groups.domain.aggregates.group import NAME_MAX_LENGTH, TEXT_MAX_LENGTH
from groups.domain.value_objects import (
    Address,
    CategoryId,
    ContactId,
    GeoPoint,
    GroupId,
    GroupMembership,
    GroupPrivacy,
    GroupRole,
)


class CreateGroupRequest(BaseModel):
    """Request model for creating a group."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    category_id: str = Field(..., min_length=1, description="Category ID")
    parent_id: str | None = Field(
        default=None, description="Parent group ID (ULID); omit for a root group"
    )
    privacy: GroupPrivacy | None = None
    details: str | None = Field(default=None, max_length=TEXT_MAX_LENGTH)
    meta_data: str | None = Field(default=None, max_length=TEXT_MAX_LENGTH)
    place_id: str | None = Field(default=None, description="Google place ID")

    def to_command(self) -> CreateGroupCommand:
        """Convert to the application command.

        Raises:
            ValueError: If an id is malformed
        """
        return CreateGroupCommand(
            name=self.name,
            category_id=CategoryId(value=self.category_id),
            parent_id=GroupId.from_string(self.parent_id) if self.parent_id else None,
            privacy=self.privacy,
            details=self.details,
            meta_data=self.meta_data,
            place_id=self.place_id,
        )


class UpdateGroupRequest(BaseModel):
    """Request model for updating a group.

    Only the fields present in the body are changed. An explicit
    ``"parent_id": null`` moves the group to the top of the tree.
    """

    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LENGTH)
    category_id: str | None = Field(default=None, min_length=1)
    parent_id: str | None = None
    privacy: GroupPrivacy | None = None
    details: str | None = Field(default=None, max_length=TEXT_MAX_LENGTH)
    meta_data: str | None = Field(default=None, max_length=TEXT_MAX_LENGTH)
    place_id: str | None = None

    def to_command(self, group_id: GroupId) -> UpdateGroupCommand:
        """Convert to the application command, leaving absent fields UNSET.

        Raises:
            ValueError: If an id is malformed or a required field is null
        """
        sent = self.model_fields_set

        if "name" in sent and self.name is None:
            raise ValueError("name cannot be null")
        if "category_id" in sent and self.category_id is None:
            raise ValueError("category_id cannot be null")

        parent_id: GroupId | None | Unset = UNSET
        if "parent_id" in sent:
            parent_id = (
                GroupId.from_string(self.parent_id) if self.parent_id else None
            )

        return UpdateGroupCommand(
            group_id=group_id,
            name=self.name if "name" in sent else UNSET,
            category_id=(
                CategoryId(value=self.category_id)
                if "category_id" in sent and self.category_id is not None
                else UNSET
            ),
            parent_id=parent_id,
            privacy=self.privacy if "privacy" in sent else UNSET,
            details=self.details if "details" in sent else UNSET,
            meta_data=self.meta_data if "meta_data" in sent else UNSET,
            place_id=self.place_id if "place_id" in sent else UNSET,
        )


class NamedRef(BaseModel):
    """An id with its display name."""

    id: str
    name: str | None = None


class AddressResponse(BaseModel):
    """Response model for a resolved place."""

    place_id: str
    latitude: float
    longitude: float
    formatted_address: str

    @classmethod
    def from_domain(cls, address: Address) -> AddressResponse:
        return cls(
            place_id=address.place_id,
            latitude=address.location.latitude,
            longitude=address.location.longitude,
            formatted_address=address.formatted_address,
        )


class GroupResponse(BaseModel):
    """Flat group record as returned by lists and summary reads."""

    id: str = Field(..., description="Group ID (ULID format)")
    name: str
    details: str | None = None
    meta_data: str | None = None
    parent_id: str | None = None
    privacy: GroupPrivacy | None = None
    category: NamedRef
    parent: NamedRef | None = None
    address: AddressResponse | None = None

    @classmethod
    def from_summary(cls, view: GroupSummaryView) -> GroupResponse:
        """Convert a summary view to the API shape.

        Args:
            view: Group with resolved category and parent names

        Returns:
            GroupResponse
        """
        group = view.group
        return cls(
            id=group.id.value,
            name=group.name,
            details=group.details,
            meta_data=group.meta_data,
            parent_id=group.parent_id.value if group.parent_id else None,
            privacy=group.privacy,
            category=NamedRef(id=group.category_id.value, name=view.category_name),
            parent=(
                NamedRef(id=group.parent_id.value, name=view.parent_name)
                if group.parent_id
                else None
            ),
            address=AddressResponse.from_domain(group.address) if group.address else None,
        )


class AttendanceResponse(BaseModel):
    """Attendance totals for a subtree."""

    total_attendance: int
    total_members: int
    percentage: str = Field(..., description="Two decimals, e.g. '250.00'")


class ReportResponse(BaseModel):
    """An event listed on the detail view."""

    id: str
    name: str
    start_date: datetime
    group_id: str
    category: str | None = None


class GroupDetailResponse(GroupResponse):
    """Full read: the flat record plus tree, membership and attendance data."""

    ancestor_ids: list[str] = Field(default_factory=list)
    descendant_ids: list[str] = Field(default_factory=list)
    leader_ids: list[str] = Field(default_factory=list)
    can_edit: bool = False
    attendance: AttendanceResponse
    reports: list[ReportResponse] = Field(default_factory=list)
    window_start: datetime | None = None
    window_end: datetime | None = None

    @classmethod
    def from_detail(cls, view: GroupDetailView) -> GroupDetailResponse:
        """Convert a detail view to the API shape."""
        base = GroupResponse.from_summary(view.summary)
        return cls(
            **base.model_dump(),
            ancestor_ids=[g.value for g in view.ancestor_ids],
            descendant_ids=[g.value for g in view.descendant_ids],
            leader_ids=[c.value for c in view.leader_ids],
            can_edit=view.can_edit,
            attendance=AttendanceResponse(
                total_attendance=view.attendance.total_attendance,
                total_members=view.attendance.total_members,
                percentage=view.attendance.percentage_display,
            ),
            reports=[
                ReportResponse(
                    id=report.id,
                    name=report.name,
                    start_date=report.start_date,
                    group_id=report.group_id.value,
                    category=report.category,
                )
                for report in view.reports
            ],
            window_start=view.window_start,
            window_end=view.window_end,
        )


class GroupSearchResponse(BaseModel):
    """One page of search results."""

    items: list[GroupResponse]
    total: int
    skip: int
    limit: int


class GroupExistsResponse(BaseModel):
    exists: bool


class GroupCountResponse(BaseModel):
    count: int


class AddGroupMemberRequest(BaseModel):
    """Request model for adding a member to a group."""

    contact_id: str = Field(..., min_length=1, description="Contact ID to add")
    role: GroupRole = Field(default=GroupRole.MEMBER, description="Role to assign")


class UpdateGroupMemberRoleRequest(BaseModel):
    """Request model for updating a group member's role."""

    role: GroupRole = Field(..., description="New role to assign")


class GroupMemberResponse(BaseModel):
    """Response model for a membership row."""

    group_id: str
    contact_id: str
    role: GroupRole = Field(..., description="Member role (leader or member)")

    @classmethod
    def from_domain(cls, membership: GroupMembership) -> GroupMemberResponse:
        return cls(
            group_id=membership.group_id.value,
            contact_id=membership.contact_id.value,
            role=membership.role,
        )


class SubmitMembershipRequest(BaseModel):
    """Request model for the current contact asking to join a group.

    The requester's coordinates are optional; when given, the distance to
    the group's address is recorded.
    """

    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)

    def to_command(
        self, group_id: GroupId, contact_id: ContactId
    ) -> MembershipRequestCommand:
        """Convert to the application command.

        Raises:
            ValueError: If only one of latitude and longitude is given
        """
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        origin = None
        if self.latitude is not None and self.longitude is not None:
            origin = GeoPoint(latitude=self.latitude, longitude=self.longitude)
        return MembershipRequestCommand(
            group_id=group_id,
            contact_id=contact_id,
            origin=origin,
        )


class MembershipRequestResponse(BaseModel):
    """Response model for a pending membership request."""

    id: str
    group_id: str
    contact_id: str
    submitted_at: datetime
    distance_km: float | None = None

    @classmethod
    def from_domain(cls, request: GroupMembershipRequest) -> MembershipRequestResponse:
        return cls(
            id=request.id.value,
            group_id=request.group_id.value,
            contact_id=request.contact_id.value,
            submitted_at=request.submitted_at,
            distance_km=request.distance_km,
        )
