"""Database infrastructure - shared engine and session primitives."""

from infrastructure.database.exceptions import (
    is_concurrency_conflict,
    is_unique_violation,
)

__all__ = [
    "is_concurrency_conflict",
    "is_unique_violation",
]
