"""Types shared across the port boundary.

Query descriptors handed to stores and read-only records handed back by
external collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from groups.domain.value_objects import CategoryId, GroupId

T = TypeVar("T")


@dataclass(frozen=True)
class GroupFilter:
    """Search criteria for groups.

    Attributes:
        name_contains: Case-insensitive substring of the name
        category_ids: Only groups in one of these categories
        restrict_to_ids: Allow-list of ids; None means unrestricted and an
            empty set matches nothing
    """

    name_contains: str | None = None
    category_ids: frozenset[CategoryId] | None = None
    restrict_to_ids: frozenset[GroupId] | None = None


@dataclass(frozen=True)
class PageRequest:
    """Offset pagination."""

    skip: int = 0
    limit: int = 25

    def __post_init__(self) -> None:
        if self.skip < 0:
            raise ValueError("skip cannot be negative")
        if self.limit < 1:
            raise ValueError("limit must be at least 1")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the unpaged total."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    skip: int = 0
    limit: int = 0


@dataclass(frozen=True)
class EventRecord:
    """An event owned by the event store, with its attendance count.

    The groups context reads these; it never writes them.
    """

    event_id: str
    group_id: GroupId
    name: str
    category: str | None
    start_date: datetime
    end_date: datetime
    attendance_count: int
