"""Protocol for tree structure observability.

Defines the interface for domain probes that capture structural changes to
the group hierarchy and rejected structural changes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class TreeStoreProbe(Protocol):
    """Domain probe for TreeStore mutations."""

    def group_inserted(self, group_id: str, parent_id: str | None) -> None:
        """Record that a group was inserted into the tree."""
        ...

    def group_reparented(
        self, group_id: str, old_parent_id: str | None, new_parent_id: str | None
    ) -> None:
        """Record that a group's parent link changed."""
        ...

    def group_removed(self, group_id: str, children_moved: int) -> None:
        """Record that a group was removed and its children moved up."""
        ...

    def invalid_parent_rejected(self, parent_id: str, group_id: str | None) -> None:
        """Record that a create or reparent named a missing parent."""
        ...

    def cycle_rejected(self, group_id: str, parent_id: str) -> None:
        """Record that a reparent was refused because it would form a cycle."""
        ...

    def corrupted_chain_detected(self, group_id: str, repeated_id: str) -> None:
        """Record that a stored ancestor chain repeats an id."""
        ...

    def with_context(self, context: ObservationContext) -> TreeStoreProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTreeStoreProbe:
    """Default implementation of TreeStoreProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTreeStoreProbe:
        """Create a new probe with observation context bound."""
        return DefaultTreeStoreProbe(logger=self._logger, context=context)

    def group_inserted(self, group_id: str, parent_id: str | None) -> None:
        self._logger.info(
            "tree_group_inserted",
            group_id=group_id,
            parent_id=parent_id,
            **self._get_context_kwargs(),
        )

    def group_reparented(
        self, group_id: str, old_parent_id: str | None, new_parent_id: str | None
    ) -> None:
        self._logger.info(
            "tree_group_reparented",
            group_id=group_id,
            old_parent_id=old_parent_id,
            new_parent_id=new_parent_id,
            **self._get_context_kwargs(),
        )

    def group_removed(self, group_id: str, children_moved: int) -> None:
        self._logger.info(
            "tree_group_removed",
            group_id=group_id,
            children_moved=children_moved,
            **self._get_context_kwargs(),
        )

    def invalid_parent_rejected(self, parent_id: str, group_id: str | None) -> None:
        self._logger.warning(
            "tree_invalid_parent_rejected",
            parent_id=parent_id,
            group_id=group_id,
            **self._get_context_kwargs(),
        )

    def cycle_rejected(self, group_id: str, parent_id: str) -> None:
        self._logger.warning(
            "tree_cycle_rejected",
            group_id=group_id,
            parent_id=parent_id,
            **self._get_context_kwargs(),
        )

    def corrupted_chain_detected(self, group_id: str, repeated_id: str) -> None:
        """Stored data loops; only possible if rows were written around the store."""
        self._logger.error(
            "tree_corrupted_chain_detected",
            group_id=group_id,
            repeated_id=repeated_id,
            **self._get_context_kwargs(),
        )
