"""Protocol for membership service observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class MembershipServiceProbe(Protocol):
    """Domain probe for membership and membership request operations."""

    def member_added(self, group_id: str, contact_id: str, role: str) -> None:
        """Record that a membership was added."""
        ...

    def member_removed(self, group_id: str, contact_id: str) -> None:
        """Record that a membership was removed."""
        ...

    def member_role_changed(self, group_id: str, contact_id: str, role: str) -> None:
        """Record that a membership role changed."""
        ...

    def request_submitted(
        self,
        request_id: str,
        group_id: str,
        contact_id: str,
        distance_km: float | None,
    ) -> None:
        """Record that a contact asked to join a group."""
        ...

    def request_approved(self, request_id: str, group_id: str, contact_id: str) -> None:
        """Record that a request became a membership."""
        ...

    def request_denied(self, request_id: str, group_id: str, contact_id: str) -> None:
        """Record that a request was turned down."""
        ...

    def with_context(self, context: ObservationContext) -> MembershipServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultMembershipServiceProbe:
    """Default implementation of MembershipServiceProbe using structlog."""

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
    ) -> DefaultMembershipServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultMembershipServiceProbe(logger=self._logger, context=context)

    def member_added(self, group_id: str, contact_id: str, role: str) -> None:
        self._logger.info(
            "group_member_added",
            group_id=group_id,
            contact_id=contact_id,
            role=role,
            **self._get_context_kwargs(),
        )

    def member_removed(self, group_id: str, contact_id: str) -> None:
        self._logger.info(
            "group_member_removed",
            group_id=group_id,
            contact_id=contact_id,
            **self._get_context_kwargs(),
        )

    def member_role_changed(self, group_id: str, contact_id: str, role: str) -> None:
        self._logger.info(
            "group_member_role_changed",
            group_id=group_id,
            contact_id=contact_id,
            role=role,
            **self._get_context_kwargs(),
        )

    def request_submitted(
        self,
        request_id: str,
        group_id: str,
        contact_id: str,
        distance_km: float | None,
    ) -> None:
        self._logger.info(
            "membership_request_submitted",
            request_id=request_id,
            group_id=group_id,
            contact_id=contact_id,
            distance_km=distance_km,
            **self._get_context_kwargs(),
        )

    def request_approved(self, request_id: str, group_id: str, contact_id: str) -> None:
        self._logger.info(
            "membership_request_approved",
            request_id=request_id,
            group_id=group_id,
            contact_id=contact_id,
            **self._get_context_kwargs(),
        )

    def request_denied(self, request_id: str, group_id: str, contact_id: str) -> None:
        self._logger.info(
            "membership_request_denied",
            request_id=request_id,
            group_id=group_id,
            contact_id=contact_id,
            **self._get_context_kwargs(),
        )
