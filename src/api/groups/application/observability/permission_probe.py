"""Protocol for permission evaluation observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class PermissionProbe(Protocol):
    """Domain probe for authorization results."""

    def permission_granted(
        self, contact_id: str, group_id: str, granting_group_id: str
    ) -> None:
        """Record that a Leader row on the chain granted modification."""
        ...

    def permission_denied(self, contact_id: str | None, group_id: str) -> None:
        """Record that no Leader row was found on the chain."""
        ...

    def seed_bypass_used(self, group_id: str) -> None:
        """Record that the seed-mode bypass authorized a change."""
        ...

    def with_context(self, context: ObservationContext) -> PermissionProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultPermissionProbe:
    """Default implementation of PermissionProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultPermissionProbe:
        """Create a new probe with observation context bound."""
        return DefaultPermissionProbe(logger=self._logger, context=context)

    def permission_granted(
        self, contact_id: str, group_id: str, granting_group_id: str
    ) -> None:
        """Record that a Leader row on the chain granted modification."""
        self._logger.debug(
            "permission_granted",
            contact_id=contact_id,
            group_id=group_id,
            granting_group_id=granting_group_id,
            inherited=granting_group_id != group_id,
            **self._get_context_kwargs(),
        )

    def permission_denied(self, contact_id: str | None, group_id: str) -> None:
        """Record that no Leader row was found on the chain."""
        self._logger.info(
            "permission_denied",
            contact_id=contact_id,
            group_id=group_id,
            **self._get_context_kwargs(),
        )

    def seed_bypass_used(self, group_id: str) -> None:
        """Record that the seed-mode bypass authorized a change."""
        self._logger.warning(
            "permission_seed_bypass_used",
            group_id=group_id,
            **self._get_context_kwargs(),
        )
