"""Unit tests for AggregationEngine."""

from datetime import UTC, datetime

import pytest
from unittest.mock import create_autospec

from groups.application.observability import AggregationProbe
from groups.application.services import AggregationEngine
from groups.application.value_objects import AttendanceSummary
from groups.domain.value_objects import CategoryId
from groups.ports.exceptions import ExternalServiceUnavailableError

MARCH_START = datetime(2026, 3, 1, tzinfo=UTC)
MARCH_END = datetime(2026, 3, 31, 23, 59, 59, 999999, tzinfo=UTC)


@pytest.fixture
def probe():
    return create_autospec(AggregationProbe, instance=True)


@pytest.fixture
def engine(tree_store, membership_index, event_store, probe) -> AggregationEngine:
    return AggregationEngine(
        tree_store=tree_store,
        membership_index=membership_index,
        event_store=event_store,
        retry_attempts=3,
        backoff_seconds=0,
        probe=probe,
    )


class TestAttendanceSummaryValue:
    def test_zero_members_is_zero_percent(self):
        summary = AttendanceSummary.compute(total_attendance=7, total_members=0)

        assert summary.percentage == 0.0
        assert summary.percentage_display == "0.00"

    def test_may_exceed_one_hundred(self):
        summary = AttendanceSummary.compute(total_attendance=5, total_members=2)

        assert summary.percentage == pytest.approx(250.0)
        assert summary.percentage_display == "250.00"


class TestAttendanceSummary:
    @pytest.mark.asyncio
    async def test_counts_whole_subtree(self, engine, region_tree):
        summary = await engine.attendance_summary(
            region_tree["region"].id, MARCH_START, MARCH_END
        )

        assert summary.total_members == 2
        assert summary.total_attendance == 5
        assert summary.percentage_display == "250.00"

    @pytest.mark.asyncio
    async def test_leaf_only_counts_itself(self, engine, region_tree):
        summary = await engine.attendance_summary(
            region_tree["chapter"].id, MARCH_START, MARCH_END
        )

        assert summary.total_members == 1
        assert summary.total_attendance == 2

    @pytest.mark.asyncio
    async def test_group_without_members_reports_zero(
        self, engine, tree_store, event_store
    ):
        empty = await tree_store.create("Empty", CategoryId(value="chapter"))

        summary = await engine.attendance_summary(empty.id, MARCH_START, MARCH_END)

        assert summary == AttendanceSummary(
            total_attendance=0, total_members=0, percentage=0.0
        )

    @pytest.mark.asyncio
    async def test_inverted_window_rejected(self, engine, region_tree):
        with pytest.raises(ValueError):
            await engine.attendance_summary(
                region_tree["region"].id, MARCH_END, MARCH_START
            )

    @pytest.mark.asyncio
    async def test_reports_computation(self, engine, region_tree, probe):
        await engine.attendance_summary(
            region_tree["region"].id, MARCH_START, MARCH_END
        )

        probe.attendance_computed.assert_called_once()
        kwargs = probe.attendance_computed.call_args.kwargs
        assert kwargs["subtree_size"] == 2
        assert kwargs["event_count"] == 2


class TestEventStoreOutages:
    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(
        self, engine, region_tree, event_store, probe
    ):
        event_store.failures_to_raise = 2

        summary = await engine.attendance_summary(
            region_tree["region"].id, MARCH_START, MARCH_END
        )

        assert summary.total_attendance == 5
        assert event_store.calls == 3
        assert probe.event_store_retrying.call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_surface_unavailable(
        self, engine, region_tree, event_store, probe
    ):
        event_store.failures_to_raise = 10

        with pytest.raises(ExternalServiceUnavailableError) as exc_info:
            await engine.attendance_summary(
                region_tree["region"].id, MARCH_START, MARCH_END
            )

        assert exc_info.value.service == "event_store"
        assert event_store.calls == 3
        probe.event_store_unavailable.assert_called_once()


class TestReports:
    @pytest.mark.asyncio
    async def test_ordered_by_start_date(self, engine, region_tree):
        reports = await engine.reports_for(
            region_tree["region"].id, MARCH_START, MARCH_END
        )

        assert [r.id for r in reports] == ["evt-chapter", "evt-region"]

    @pytest.mark.asyncio
    async def test_unbounded_window_includes_everything(self, engine, region_tree):
        reports = await engine.reports_for(region_tree["region"].id)

        assert [r.id for r in reports] == [
            "evt-last-month",
            "evt-chapter",
            "evt-region",
        ]
