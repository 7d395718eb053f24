"""Domain probe for calls to collaborators owned by other systems."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class ExternalServiceProbe(Protocol):
    """Domain probe for event store, category store and place lookups."""

    def call_succeeded(self, service: str, duration_ms: float, **details: Any) -> None:
        """Record a completed external call."""
        ...

    def call_timed_out(self, service: str, timeout_seconds: float) -> None:
        """Record that an external call exceeded its time bound."""
        ...

    def call_failed(self, service: str, error: str) -> None:
        """Record that an external call errored."""
        ...

    def with_context(self, context: ObservationContext) -> ExternalServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultExternalServiceProbe:
    """Default implementation of ExternalServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultExternalServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultExternalServiceProbe(logger=self._logger, context=context)

    def call_succeeded(self, service: str, duration_ms: float, **details: Any) -> None:
        self._logger.debug(
            "external_call_succeeded",
            service=service,
            duration_ms=round(duration_ms, 2),
            **details,
            **self._get_context_kwargs(),
        )

    def call_timed_out(self, service: str, timeout_seconds: float) -> None:
        self._logger.warning(
            "external_call_timed_out",
            service=service,
            timeout_seconds=timeout_seconds,
            **self._get_context_kwargs(),
        )

    def call_failed(self, service: str, error: str) -> None:
        self._logger.error(
            "external_call_failed",
            service=service,
            error=error,
            **self._get_context_kwargs(),
        )
