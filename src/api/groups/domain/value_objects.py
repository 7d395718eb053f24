"""Value objects for the groups domain.

Value objects are immutable descriptors that provide type safety and
domain semantics for identifiers and domain concepts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum

from ulid import ULID

EARTH_RADIUS_KM = 6371.0088


@dataclass(frozen=True)
class GroupId:
    """Identifier for a Group aggregate.

    Uses ULID for sortability and distribution-friendly generation.
    """

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> GroupId:
        """Generate a new GroupId using ULID."""
        return cls(value=str(ULID()))

    @classmethod
    def from_string(cls, value: str) -> GroupId:
        """Create GroupId from string value.

        Args:
            value: ULID string

        Returns:
            GroupId instance

        Raises:
            ValueError: If value is not a valid ULID
        """
        try:
            ULID.from_str(value)
        except ValueError as e:
            raise ValueError(f"Invalid GroupId: {value}") from e

        return cls(value=value)


@dataclass(frozen=True)
class MembershipRequestId:
    """Identifier for a GroupMembershipRequest aggregate."""

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> MembershipRequestId:
        """Generate a new MembershipRequestId using ULID."""
        return cls(value=str(ULID()))

    @classmethod
    def from_string(cls, value: str) -> MembershipRequestId:
        """Create MembershipRequestId from string value.

        Raises:
            ValueError: If value is not a valid ULID
        """
        try:
            ULID.from_str(value)
        except ValueError as e:
            raise ValueError(f"Invalid MembershipRequestId: {value}") from e

        return cls(value=value)


@dataclass(frozen=True)
class ContactId:
    """Identifier of a contact (person) owned by the CRM.

    Contacts live outside this context, so the id is opaque: any non-blank
    string is accepted.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("ContactId cannot be empty")

    def __str__(self) -> str:
        """Return string representation."""
        return self.value


@dataclass(frozen=True)
class CategoryId:
    """Identifier of a group category owned by the category store."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("CategoryId cannot be empty")

    def __str__(self) -> str:
        """Return string representation."""
        return self.value


class GroupPrivacy(StrEnum):
    """Who may discover a group."""

    PUBLIC = "public"
    PRIVATE = "private"
    HIDDEN = "hidden"


class GroupRole(StrEnum):
    """Roles for group membership.

    Leaders may modify their group and, by inheritance, every group below it.
    """

    LEADER = "leader"
    MEMBER = "member"


@dataclass(frozen=True)
class GroupMembership:
    """A contact's membership in a group with a specific role.

    Immutable; a role change replaces the row.
    """

    group_id: GroupId
    contact_id: ContactId
    role: GroupRole

    def is_leader(self) -> bool:
        """Check if this membership grants leadership."""
        return self.role == GroupRole.LEADER


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate pair."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")

    def distance_km(self, other: GeoPoint) -> float:
        """Great-circle distance using the haversine formula."""
        lat1, lon1 = math.radians(self.latitude), math.radians(self.longitude)
        lat2, lon2 = math.radians(other.latitude), math.radians(other.longitude)
        a = (
            math.sin((lat2 - lat1) / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
        )
        return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


@dataclass(frozen=True)
class Address:
    """A resolved place attached to a group."""

    place_id: str
    location: GeoPoint
    formatted_address: str

    def as_dict(self) -> dict[str, object]:
        """Serialize to a plain document for storage."""
        return {
            "place_id": self.place_id,
            "latitude": self.location.latitude,
            "longitude": self.location.longitude,
            "formatted_address": self.formatted_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Address:
        """Rebuild from the stored document."""
        return cls(
            place_id=str(data["place_id"]),
            location=GeoPoint(
                latitude=float(data["latitude"]),  # type: ignore[arg-type]
                longitude=float(data["longitude"]),  # type: ignore[arg-type]
            ),
            formatted_address=str(data.get("formatted_address", "")),
        )
