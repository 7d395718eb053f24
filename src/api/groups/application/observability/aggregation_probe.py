"""Protocol for subtree aggregation observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class AggregationProbe(Protocol):
    """Domain probe for AggregationEngine operations."""

    def attendance_computed(
        self,
        group_id: str,
        subtree_size: int,
        event_count: int,
        total_attendance: int,
        total_members: int,
        percentage: float,
    ) -> None:
        """Record a computed attendance summary."""
        ...

    def event_store_retrying(self, attempt: int, error: str) -> None:
        """Record that an event store read failed and will be retried."""
        ...

    def event_store_unavailable(self, group_id: str, attempts: int, error: str) -> None:
        """Record that the event store stayed unavailable after all retries."""
        ...

    def with_context(self, context: ObservationContext) -> AggregationProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultAggregationProbe:
    """Default implementation of AggregationProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultAggregationProbe:
        """Create a new probe with observation context bound."""
        return DefaultAggregationProbe(logger=self._logger, context=context)

    def attendance_computed(
        self,
        group_id: str,
        subtree_size: int,
        event_count: int,
        total_attendance: int,
        total_members: int,
        percentage: float,
    ) -> None:
        """Record a computed attendance summary."""
        self._logger.info(
            "attendance_computed",
            group_id=group_id,
            subtree_size=subtree_size,
            event_count=event_count,
            total_attendance=total_attendance,
            total_members=total_members,
            percentage=round(percentage, 2),
            **self._get_context_kwargs(),
        )

    def event_store_retrying(self, attempt: int, error: str) -> None:
        """Record that an event store read failed and will be retried."""
        self._logger.warning(
            "event_store_retrying",
            attempt=attempt,
            error=error,
            **self._get_context_kwargs(),
        )

    def event_store_unavailable(self, group_id: str, attempts: int, error: str) -> None:
        """Record that the event store stayed unavailable after all retries."""
        self._logger.error(
            "event_store_unavailable",
            group_id=group_id,
            attempts=attempts,
            error=error,
            **self._get_context_kwargs(),
        )
