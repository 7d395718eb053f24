"""Domain exceptions for the groups bounded context.

Every error carries the offending id and the attempted operation so the
presentation layer can build a user-facing message without leaking
implementation details.
"""

from __future__ import annotations


class GroupHierarchyError(Exception):
    """Base exception for the groups context.

    Attributes:
        group_id: The id the operation failed on (if any)
        operation: The logical operation that was attempted (if known)
    """

    def __init__(
        self,
        message: str,
        *,
        group_id: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.group_id = group_id
        self.operation = operation


class GroupNotFoundError(GroupHierarchyError):
    """Raised when a group id does not resolve."""

    pass


class InvalidParentError(GroupHierarchyError):
    """Raised when create/reparent references a parent that does not exist."""

    def __init__(
        self,
        message: str,
        *,
        parent_id: str,
        group_id: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, group_id=group_id, operation=operation)
        self.parent_id = parent_id


class CycleDetectedError(GroupHierarchyError):
    """Raised when a reparent would make a group its own ancestor.

    Also raised when a stored ancestor chain is found to loop, which can only
    happen if the data was written around the TreeStore.
    """

    def __init__(
        self,
        message: str,
        *,
        group_id: str,
        parent_id: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, group_id=group_id, operation=operation)
        self.parent_id = parent_id


class ForbiddenError(GroupHierarchyError):
    """Raised when the caller holds no Leader role on the group's ancestor chain.

    The application layer must raise this before any write happens.
    """

    pass


class ExternalServiceUnavailableError(GroupHierarchyError):
    """Raised when an external collaborator times out or errors.

    Recoverable: read paths retry with backoff before surfacing this.
    """

    def __init__(
        self,
        message: str,
        *,
        service: str,
        group_id: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, group_id=group_id, operation=operation)
        self.service = service


class ConflictRetryableError(GroupHierarchyError):
    """Raised when a concurrent writer won a structural mutation.

    The whole operation (re-read, re-check, re-write) may be retried.
    """

    pass


class DuplicateMembershipError(GroupHierarchyError):
    """Raised when a contact already holds a membership in the group."""

    pass


class MembershipNotFoundError(GroupHierarchyError):
    """Raised when a membership row does not exist."""

    pass


class DuplicateMembershipRequestError(GroupHierarchyError):
    """Raised when a contact already has a pending request for the group."""

    pass


class MembershipRequestNotFoundError(GroupHierarchyError):
    """Raised when a membership request does not exist (or was already handled)."""

    pass


class PlaceNotFoundError(GroupHierarchyError):
    """Raised when the place service does not know a place id."""

    def __init__(self, message: str, *, place_id: str):
        super().__init__(message)
        self.place_id = place_id
