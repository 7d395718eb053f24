"""Group aggregate for the groups context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from groups.domain.value_objects import (
    Address,
    CategoryId,
    GroupId,
    GroupPrivacy,
)

NAME_MAX_LENGTH = 100
TEXT_MAX_LENGTH = 500


@dataclass
class Group:
    """Group aggregate: one node of the single-parent group hierarchy.

    The aggregate only knows its own parent id. Children, ancestors and
    memberships are derived by the stores through id lookups; the aggregate
    never holds references to other groups.

    Business rules:
    - Group names must be 1-100 characters
    - Details and metadata are at most 500 characters
    - A group can never be its own parent (deeper cycles are rejected by
      the TreeStore, which can see the whole chain)

    ``version`` is the optimistic concurrency token; it is 0 until the group
    is first persisted and is advanced by the repository.
    """

    id: GroupId
    name: str
    category_id: CategoryId
    parent_id: Optional[GroupId]
    created_at: datetime
    updated_at: datetime
    privacy: Optional[GroupPrivacy] = None
    details: Optional[str] = None
    meta_data: Optional[str] = None
    address: Optional[Address] = None
    version: int = 0

    def __post_init__(self) -> None:
        """Validate business rules after initialization."""
        self._validate_name(self.name)
        self._validate_text("details", self.details)
        self._validate_text("meta_data", self.meta_data)
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("A group cannot be its own parent")

    @staticmethod
    def _validate_name(name: str) -> None:
        if not name or not name.strip() or len(name) > NAME_MAX_LENGTH:
            raise ValueError(
                f"Group name must be between 1 and {NAME_MAX_LENGTH} characters"
            )

    @staticmethod
    def _validate_text(field_name: str, value: str | None) -> None:
        if value is not None and len(value) > TEXT_MAX_LENGTH:
            raise ValueError(
                f"Group {field_name} must be at most {TEXT_MAX_LENGTH} characters"
            )

    @classmethod
    def create(
        cls,
        name: str,
        category_id: CategoryId,
        parent_id: GroupId | None = None,
        privacy: GroupPrivacy | None = None,
        details: str | None = None,
        meta_data: str | None = None,
        address: Address | None = None,
    ) -> "Group":
        """Factory method for creating a new group.

        Generates the id and timestamps. Whether ``parent_id`` resolves is
        checked by the TreeStore, not here.

        Args:
            name: Display name (1-100 characters)
            category_id: Category reference
            parent_id: Optional parent group
            privacy: Optional privacy flag
            details: Optional free-text description
            meta_data: Optional free-text metadata
            address: Optional resolved place

        Returns:
            A new, unsaved Group aggregate

        Raises:
            ValueError: If name, details or metadata are invalid
        """
        now = datetime.now(UTC)
        return cls(
            id=GroupId.generate(),
            name=name.strip() if name else name,
            category_id=category_id,
            parent_id=parent_id,
            privacy=privacy,
            details=details,
            meta_data=meta_data,
            address=address,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_root(self) -> bool:
        """Whether this group sits at the top of its tree."""
        return self.parent_id is None

    def rename(self, new_name: str) -> None:
        """Rename the group.

        Raises:
            ValueError: If the name is invalid
        """
        self._validate_name(new_name)
        self.name = new_name.strip()
        self._touch()

    def describe(self, details: str | None, meta_data: str | None) -> None:
        """Replace the free-text details and metadata."""
        self._validate_text("details", details)
        self._validate_text("meta_data", meta_data)
        self.details = details
        self.meta_data = meta_data
        self._touch()

    def change_privacy(self, privacy: GroupPrivacy | None) -> None:
        """Set the privacy flag."""
        self.privacy = privacy
        self._touch()

    def change_category(self, category_id: CategoryId) -> None:
        """Point the group at another category."""
        self.category_id = category_id
        self._touch()

    def relocate(self, address: Address | None) -> None:
        """Attach (or clear) the resolved address."""
        self.address = address
        self._touch()

    def move_to(self, parent_id: GroupId | None) -> None:
        """Re-point the parent link.

        Only the TreeStore may call this, after it has walked the new
        parent's ancestor chain.

        Raises:
            ValueError: If the group would become its own parent
        """
        if parent_id is not None and parent_id == self.id:
            raise ValueError("A group cannot be its own parent")
        self.parent_id = parent_id
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC)
