"""Wall-clock implementation of the Clock port."""

from __future__ import annotations

from datetime import UTC, datetime


class SystemClock:
    """Current UTC time from the system clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)
