"""Database-specific exceptions and error classification."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

# SQLSTATE codes PostgreSQL raises when a concurrent transaction wins
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

_UNIQUE_VIOLATION = "23505"


def _sqlstate(error: DBAPIError) -> str | None:
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_concurrency_conflict(error: BaseException) -> bool:
    """Tell whether an error means "another writer won, try again".

    Covers optimistic version mismatches (StaleDataError) and PostgreSQL
    serialization failures or deadlocks surfaced through the DBAPI.

    Args:
        error: Exception raised by a flush or commit

    Returns:
        True if re-running the whole unit of work may succeed
    """
    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, DBAPIError):
        return _sqlstate(error) in _RETRYABLE_SQLSTATES
    return False


def is_unique_violation(error: BaseException) -> bool:
    """Tell whether an error is a primary key or unique constraint violation.

    Foreign key and check violations are integrity errors too, but they do
    not mean the row already exists.
    """
    return isinstance(error, DBAPIError) and _sqlstate(error) == _UNIQUE_VIOLATION
