"""AggregationEngine: attendance and reports over a whole subtree."""

from __future__ import annotations

from datetime import datetime

from groups.application.observability import AggregationProbe, DefaultAggregationProbe
from groups.application.retry import external_read_retrying
from groups.application.services.membership_index import MembershipIndex
from groups.application.services.tree_store import TreeStore
from groups.application.value_objects import AttendanceSummary, Report
from groups.domain.value_objects import GroupId
from groups.ports.exceptions import ExternalServiceUnavailableError
from groups.ports.services import IEventStore
from groups.ports.types import EventRecord


class AggregationEngine:
    """Subtree-scoped attendance statistics.

    The scope of every aggregate is the group plus all its descendants, as
    resolved by the TreeStore. Event store reads are retried with
    exponential backoff; once retries are exhausted the failure surfaces as
    ExternalServiceUnavailableError.
    """

    def __init__(
        self,
        tree_store: TreeStore,
        membership_index: MembershipIndex,
        event_store: IEventStore,
        *,
        retry_attempts: int = 3,
        backoff_seconds: float = 0.2,
        probe: AggregationProbe | None = None,
    ):
        """Initialize AggregationEngine.

        Args:
            tree_store: Resolves the subtree of a group
            membership_index: Counts members across the subtree
            event_store: External, read-only event and attendance records
            retry_attempts: Attempts per event store read
            backoff_seconds: Base of the exponential backoff between attempts
            probe: Optional domain probe for observability
        """
        self._tree = tree_store
        self._memberships = membership_index
        self._events = event_store
        self._retry_attempts = retry_attempts
        self._backoff_seconds = backoff_seconds
        self._probe = probe or DefaultAggregationProbe()

    async def attendance_summary(
        self,
        group_id: GroupId,
        window_start: datetime,
        window_end: datetime,
    ) -> AttendanceSummary:
        """Attendance totals for the subtree of ``group_id`` in a window.

        Only events whose whole [start, end] interval lies inside
        [window_start, window_end] count.

        Raises:
            GroupNotFoundError: If the group does not resolve
            ExternalServiceUnavailableError: If the event store stays down
            ValueError: If the window is inverted
        """
        summary, _ = await self.summarize(group_id, window_start, window_end)
        return summary

    async def reports_for(
        self,
        group_id: GroupId,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> list[Report]:
        """Events of the subtree for display, ordered by start date."""
        self._check_window(window_start, window_end)
        subtree = set(await self._tree.subtree_ids(group_id))
        events = await self._fetch_events(group_id, subtree, window_start, window_end)
        return self._to_reports(events)

    async def summarize(
        self,
        group_id: GroupId,
        window_start: datetime,
        window_end: datetime,
    ) -> tuple[AttendanceSummary, list[Report]]:
        """Attendance summary and report list from a single event read."""
        self._check_window(window_start, window_end)
        subtree = set(await self._tree.subtree_ids(group_id))
        events = await self._fetch_events(group_id, subtree, window_start, window_end)

        total_attendance = sum(event.attendance_count for event in events)
        total_members = await self._memberships.count_of(subtree)
        summary = AttendanceSummary.compute(total_attendance, total_members)

        self._probe.attendance_computed(
            group_id=group_id.value,
            subtree_size=len(subtree),
            event_count=len(events),
            total_attendance=summary.total_attendance,
            total_members=summary.total_members,
            percentage=summary.percentage,
        )
        return summary, self._to_reports(events)

    async def _fetch_events(
        self,
        group_id: GroupId,
        subtree: set[GroupId],
        window_start: datetime | None,
        window_end: datetime | None,
    ) -> list[EventRecord]:
        events: list[EventRecord] = []
        try:
            async for attempt in external_read_retrying(
                self._retry_attempts,
                self._backoff_seconds,
                on_retry=lambda n, e: self._probe.event_store_retrying(n, str(e)),
            ):
                with attempt:
                    events = await self._events.events_in_groups(
                        subtree, window_start, window_end
                    )
        except ExternalServiceUnavailableError as e:
            self._probe.event_store_unavailable(
                group_id=group_id.value,
                attempts=self._retry_attempts,
                error=str(e),
            )
            raise ExternalServiceUnavailableError(
                f"Event store unavailable while aggregating group {group_id}",
                service="event_store",
                group_id=group_id.value,
                operation="aggregate",
            ) from e
        return events

    @staticmethod
    def _to_reports(events: list[EventRecord]) -> list[Report]:
        ordered = sorted(events, key=lambda event: (event.start_date, event.event_id))
        return [
            Report(
                id=event.event_id,
                name=event.name,
                start_date=event.start_date,
                group_id=event.group_id,
                category=event.category,
            )
            for event in ordered
        ]

    @staticmethod
    def _check_window(start: datetime | None, end: datetime | None) -> None:
        if start is not None and end is not None and start > end:
            raise ValueError("window_start must not be after window_end")
