"""IEventStore over the event and attendance tables.

The tables belong to the events system; this store only selects from them
through its own read session so that slow event queries never hold the
caller's transaction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from groups.domain.value_objects import GroupId
from groups.infrastructure.bounded_call import bounded_call
from groups.infrastructure.models import EventAttendanceModel, GroupEventModel
from groups.infrastructure.observability import (
    DefaultExternalServiceProbe,
    ExternalServiceProbe,
)
from groups.ports.services import IEventStore
from groups.ports.types import EventRecord


class SqlEventStore(IEventStore):
    """Read-only event store backed by SQL tables."""

    SERVICE_NAME = "event_store"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 5.0,
        probe: ExternalServiceProbe | None = None,
    ):
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds
        self._probe = probe or DefaultExternalServiceProbe()

    async def events_in_groups(
        self,
        group_ids: set[GroupId],
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> list[EventRecord]:
        """Events of the groups, with their attendee counts, by start date."""
        if not group_ids:
            return []

        attendance = (
            select(
                EventAttendanceModel.event_id,
                func.count().label("attendance_count"),
            )
            .group_by(EventAttendanceModel.event_id)
            .subquery()
        )
        stmt = (
            select(GroupEventModel, func.coalesce(attendance.c.attendance_count, 0))
            .outerjoin(attendance, attendance.c.event_id == GroupEventModel.id)
            .where(GroupEventModel.group_id.in_([g.value for g in group_ids]))
            .order_by(GroupEventModel.start_date, GroupEventModel.id)
        )
        if window_start is not None:
            stmt = stmt.where(GroupEventModel.start_date >= window_start)
        if window_end is not None:
            stmt = stmt.where(GroupEventModel.end_date <= window_end)

        async def query() -> list[EventRecord]:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [
                    EventRecord(
                        event_id=event.id,
                        group_id=GroupId(value=event.group_id),
                        name=event.name,
                        category=event.category,
                        start_date=event.start_date,
                        end_date=event.end_date,
                        attendance_count=int(count),
                    )
                    for event, count in result.all()
                ]

        return await bounded_call(
            self.SERVICE_NAME, self._timeout_seconds, self._probe, query
        )
