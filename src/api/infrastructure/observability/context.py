"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures request-scoped and domain-relevant metadata that should be
    included with all instrumentation events.

    Attributes:
        request_id: Unique identifier for the current request/operation.
        contact_id: Contact performing the operation (if applicable).
        operation: Logical operation name (create, read, update, ...).
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(request_id="req-123", contact_id="c-9")
        probe = DefaultGroupServiceProbe().with_context(context)
    """

    request_id: str | None = None
    contact_id: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.request_id is not None:
            result["request_id"] = self.request_id
        if self.contact_id is not None:
            result["contact_id"] = self.contact_id
        if self.operation is not None:
            result["operation"] = self.operation
        result.update(self.extra)
        return result

    def with_operation(self, operation: str) -> ObservationContext:
        """Create a new context with the operation name set."""
        return ObservationContext(
            request_id=self.request_id,
            contact_id=self.contact_id,
            operation=operation,
            extra=self.extra,
        )

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return ObservationContext(
            request_id=self.request_id,
            contact_id=self.contact_id,
            operation=self.operation,
            extra={**self.extra, **kwargs},
        )
