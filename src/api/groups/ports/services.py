"""Protocols for collaborators outside the groups context.

The event store, the category store and the place service are owned by
other systems. Implementations must bound every call with a timeout and
raise ExternalServiceUnavailableError instead of hanging.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from groups.domain.value_objects import Address, CategoryId, GroupId
from groups.ports.types import EventRecord


@runtime_checkable
class IEventStore(Protocol):
    """Read access to events and their attendance."""

    async def events_in_groups(
        self,
        group_ids: set[GroupId],
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> list[EventRecord]:
        """Events held by any of the groups.

        When a window is given only events whose whole [start, end] interval
        lies inside [window_start, window_end] are returned.

        Raises:
            ExternalServiceUnavailableError: On timeout or store failure
        """
        ...


@runtime_checkable
class ICategoryStore(Protocol):
    """Read access to category display names."""

    async def names_for(self, category_ids: set[CategoryId]) -> dict[CategoryId, str]:
        """Names of the given categories (unknown ids are omitted).

        Raises:
            ExternalServiceUnavailableError: On timeout or store failure
        """
        ...


@runtime_checkable
class IPlaceService(Protocol):
    """Geocoding / place lookup."""

    async def resolve_place(self, place_id: str) -> Address:
        """Resolve a place id to coordinates and a formatted address.

        Raises:
            PlaceNotFoundError: If the place id is unknown
            ExternalServiceUnavailableError: On timeout or service failure
        """
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time (UTC)."""

    def now(self) -> datetime:
        """Current timezone-aware UTC time."""
        ...
