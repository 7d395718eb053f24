"""Protocol for group application service observability.

Defines the interface for domain probes that capture application-level
domain events for group service operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class GroupServiceProbe(Protocol):
    """Domain probe for group application service operations."""

    def group_created(
        self,
        group_id: str,
        name: str,
        parent_id: str | None,
        creator_id: str | None,
    ) -> None:
        """Record that a group was created."""
        ...

    def group_creation_failed(self, name: str, error: str) -> None:
        """Record that group creation failed."""
        ...

    def group_read(self, group_id: str, depth: str) -> None:
        """Record that a group view was assembled."""
        ...

    def group_read_failed(self, group_id: str, depth: str, error: str) -> None:
        """Record that a read failed as a whole (no partial view returned)."""
        ...

    def group_updated(self, group_id: str, changed: list[str]) -> None:
        """Record that a group was updated."""
        ...

    def group_deleted(self, group_id: str, deleted_by: str | None) -> None:
        """Record that a group was deleted."""
        ...

    def mutation_forbidden(
        self, operation: str, group_id: str, contact_id: str | None
    ) -> None:
        """Record that a mutation was refused before any write."""
        ...

    def conflict_retrying(self, operation: str, attempt: int) -> None:
        """Record that a structural mutation lost a race and will be retried."""
        ...

    def address_resolution_failed(self, place_id: str, error: str) -> None:
        """Record that a place lookup failed and the address was dropped."""
        ...

    def search_executed(self, total: int, restricted: bool) -> None:
        """Record that a search ran."""
        ...

    def with_context(self, context: ObservationContext) -> GroupServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultGroupServiceProbe:
    """Default implementation of GroupServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultGroupServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultGroupServiceProbe(logger=self._logger, context=context)

    def group_created(
        self,
        group_id: str,
        name: str,
        parent_id: str | None,
        creator_id: str | None,
    ) -> None:
        """Record that a group was created."""
        self._logger.info(
            "group_created",
            group_id=group_id,
            name=name,
            parent_id=parent_id,
            creator_id=creator_id,
            **self._get_context_kwargs(),
        )

    def group_creation_failed(self, name: str, error: str) -> None:
        """Record that group creation failed."""
        self._logger.error(
            "group_creation_failed",
            name=name,
            error=error,
            **self._get_context_kwargs(),
        )

    def group_read(self, group_id: str, depth: str) -> None:
        """Record that a group view was assembled."""
        self._logger.debug(
            "group_read",
            group_id=group_id,
            depth=depth,
            **self._get_context_kwargs(),
        )

    def group_read_failed(self, group_id: str, depth: str, error: str) -> None:
        """Record that a read failed as a whole (no partial view returned)."""
        self._logger.error(
            "group_read_failed",
            group_id=group_id,
            depth=depth,
            error=error,
            **self._get_context_kwargs(),
        )

    def group_updated(self, group_id: str, changed: list[str]) -> None:
        """Record that a group was updated."""
        self._logger.info(
            "group_updated",
            group_id=group_id,
            changed=changed,
            **self._get_context_kwargs(),
        )

    def group_deleted(self, group_id: str, deleted_by: str | None) -> None:
        """Record that a group was deleted."""
        self._logger.info(
            "group_deleted",
            group_id=group_id,
            deleted_by=deleted_by,
            **self._get_context_kwargs(),
        )

    def mutation_forbidden(
        self, operation: str, group_id: str, contact_id: str | None
    ) -> None:
        """Record that a mutation was refused before any write."""
        self._logger.warning(
            "group_mutation_forbidden",
            attempted=operation,
            group_id=group_id,
            contact_id=contact_id,
            **self._get_context_kwargs(),
        )

    def conflict_retrying(self, operation: str, attempt: int) -> None:
        """Record that a structural mutation lost a race and will be retried."""
        self._logger.warning(
            "group_conflict_retrying",
            attempted=operation,
            attempt=attempt,
            **self._get_context_kwargs(),
        )

    def address_resolution_failed(self, place_id: str, error: str) -> None:
        """Record that a place lookup failed and the address was dropped."""
        self._logger.warning(
            "group_address_resolution_failed",
            place_id=place_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def search_executed(self, total: int, restricted: bool) -> None:
        """Record that a search ran."""
        self._logger.debug(
            "group_search_executed",
            total=total,
            restricted=restricted,
            **self._get_context_kwargs(),
        )
