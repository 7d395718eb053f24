"""Domain probe for groups repository operations.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to group, membership and membership
request persistence.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class GroupRepositoryProbe(Protocol):
    """Domain probe for group repository operations."""

    def group_saved(self, group_id: str, version: int) -> None:
        """Record that a group was successfully saved."""
        ...

    def group_not_found(self, group_id: str) -> None:
        """Record that a group was not found."""
        ...

    def group_deleted(self, group_id: str) -> None:
        """Record that a group was deleted."""
        ...

    def version_conflict(
        self, group_id: str, expected_version: int, actual_version: int
    ) -> None:
        """Record that a save lost an optimistic concurrency race."""
        ...

    def with_context(self, context: ObservationContext) -> GroupRepositoryProbe:
        """Create a new probe with observation context bound."""
        ...


class MembershipRepositoryProbe(Protocol):
    """Domain probe for membership and membership request persistence."""

    def duplicate_membership(self, group_id: str, contact_id: str) -> None:
        """Record that an insert hit the (group, contact) key."""
        ...

    def duplicate_request(self, group_id: str, contact_id: str) -> None:
        """Record that a second pending request was refused."""
        ...

    def memberships_purged(self, group_id: str, count: int) -> None:
        """Record that every row of a group was removed."""
        ...

    def with_context(self, context: ObservationContext) -> MembershipRepositoryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultGroupRepositoryProbe:
    """Default implementation of GroupRepositoryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultGroupRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultGroupRepositoryProbe(logger=self._logger, context=context)

    def group_saved(self, group_id: str, version: int) -> None:
        """Record that a group was successfully saved."""
        self._logger.debug(
            "group_saved",
            group_id=group_id,
            version=version,
            **self._get_context_kwargs(),
        )

    def group_not_found(self, group_id: str) -> None:
        """Record that a group was not found."""
        self._logger.debug(
            "group_not_found",
            group_id=group_id,
            **self._get_context_kwargs(),
        )

    def group_deleted(self, group_id: str) -> None:
        """Record that a group was deleted."""
        self._logger.debug(
            "group_row_deleted",
            group_id=group_id,
            **self._get_context_kwargs(),
        )

    def version_conflict(
        self, group_id: str, expected_version: int, actual_version: int
    ) -> None:
        """Record that a save lost an optimistic concurrency race."""
        self._logger.warning(
            "group_version_conflict",
            group_id=group_id,
            expected_version=expected_version,
            actual_version=actual_version,
            **self._get_context_kwargs(),
        )


class DefaultMembershipRepositoryProbe:
    """Default implementation of MembershipRepositoryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultMembershipRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultMembershipRepositoryProbe(logger=self._logger, context=context)

    def duplicate_membership(self, group_id: str, contact_id: str) -> None:
        """Record that an insert hit the (group, contact) key."""
        self._logger.warning(
            "duplicate_membership",
            group_id=group_id,
            contact_id=contact_id,
            **self._get_context_kwargs(),
        )

    def duplicate_request(self, group_id: str, contact_id: str) -> None:
        """Record that a second pending request was refused."""
        self._logger.warning(
            "duplicate_membership_request",
            group_id=group_id,
            contact_id=contact_id,
            **self._get_context_kwargs(),
        )

    def memberships_purged(self, group_id: str, count: int) -> None:
        """Record that every row of a group was removed."""
        self._logger.info(
            "memberships_purged",
            group_id=group_id,
            count=count,
            **self._get_context_kwargs(),
        )
