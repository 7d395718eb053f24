"""Unit tests for GroupService.

Scenarios run against the in-memory fakes from conftest, with Region A as
the root and Chapter 1 below it.
"""

import asyncio
from datetime import UTC, datetime

import pytest
from unittest.mock import create_autospec

from groups.application.observability import GroupServiceProbe
from groups.application.services import GroupService, calendar_month_window
from groups.application.value_objects import (
    CreateGroupCommand,
    CurrentUser,
    GroupDetailView,
    GroupSummaryView,
    ReadDepth,
    UpdateGroupCommand,
)
from groups.domain.aggregates import GroupMembershipRequest
from groups.domain.value_objects import (
    Address,
    ContactId,
    GeoPoint,
    GroupId,
    GroupMembership,
    GroupRole,
)
from groups.ports.exceptions import (
    CycleDetectedError,
    ExternalServiceUnavailableError,
    ForbiddenError,
    GroupNotFoundError,
    InvalidParentError,
    PlaceNotFoundError,
)
from groups.ports.services import IPlaceService
from groups.ports.types import GroupFilter, PageRequest

BERLIN = Address(
    place_id="place-berlin",
    location=GeoPoint(latitude=52.52, longitude=13.405),
    formatted_address="Berlin, Germany",
)


@pytest.fixture
def probe():
    return create_autospec(GroupServiceProbe, instance=True)


@pytest.fixture
def place_service():
    return create_autospec(IPlaceService, instance=True)


@pytest.fixture
def service(
    session,
    group_repo,
    request_repo,
    tree_store,
    membership_index,
    permissions,
    aggregation,
    category_store,
    clock,
    groups_settings,
    place_service,
    probe,
) -> GroupService:
    """GroupService with a place service and a mock probe."""
    return GroupService(
        session=session,
        group_repository=group_repo,
        request_repository=request_repo,
        tree_store=tree_store,
        membership_index=membership_index,
        permissions=permissions,
        aggregation=aggregation,
        category_store=category_store,
        clock=clock,
        place_service=place_service,
        settings=groups_settings,
        probe=probe,
    )


async def make_leader(membership_repo, group_id: GroupId, contact_id: ContactId):
    await membership_repo.add(
        GroupMembership(group_id=group_id, contact_id=contact_id, role=GroupRole.LEADER)
    )


class TestCalendarMonthWindow:
    def test_mid_month(self):
        start, end = calendar_month_window(datetime(2026, 3, 15, 12, 0, tzinfo=UTC))

        assert start == datetime(2026, 3, 1, tzinfo=UTC)
        assert end == datetime(2026, 3, 31, 23, 59, 59, 999999, tzinfo=UTC)

    def test_december_rolls_into_next_year(self):
        start, end = calendar_month_window(datetime(2026, 12, 31, 23, 0, tzinfo=UTC))

        assert start == datetime(2026, 12, 1, tzinfo=UTC)
        assert end == datetime(2026, 12, 31, 23, 59, 59, 999999, tzinfo=UTC)


class TestCreate:
    @pytest.mark.asyncio
    async def test_root_needs_no_permission(self, group_service, region_category):
        group = await group_service.create(
            CreateGroupCommand(name="Region B", category_id=region_category), None
        )

        assert group.is_root

    @pytest.mark.asyncio
    async def test_child_requires_leader_on_parent_chain(
        self, group_service, membership_repo, region_tree, chapter_category, alice
    ):
        await make_leader(membership_repo, region_tree["region"].id, alice)

        team = await group_service.create(
            CreateGroupCommand(
                name="Team 1",
                category_id=chapter_category,
                parent_id=region_tree["chapter"].id,
            ),
            CurrentUser(contact_id=alice),
        )

        assert team.parent_id == region_tree["chapter"].id

    @pytest.mark.asyncio
    async def test_child_forbidden_without_leadership(
        self, group_service, group_repo, region_tree, chapter_category, bob
    ):
        writes_before = group_repo.writes

        with pytest.raises(ForbiddenError):
            await group_service.create(
                CreateGroupCommand(
                    name="Team 1",
                    category_id=chapter_category,
                    parent_id=region_tree["chapter"].id,
                ),
                CurrentUser(contact_id=bob),
            )

        assert group_repo.writes == writes_before

    @pytest.mark.asyncio
    async def test_seed_mode_skips_permission(
        self, group_service, region_tree, chapter_category
    ):
        group = await group_service.create(
            CreateGroupCommand(
                name="Seeded",
                category_id=chapter_category,
                parent_id=region_tree["region"].id,
            ),
            None,
            seed_mode=True,
        )

        assert group.parent_id == region_tree["region"].id

    @pytest.mark.asyncio
    async def test_unknown_parent_is_invalid(
        self, service, group_repo, chapter_category, alice, probe
    ):
        with pytest.raises(InvalidParentError):
            await service.create(
                CreateGroupCommand(
                    name="Orphan",
                    category_id=chapter_category,
                    parent_id=GroupId.generate(),
                ),
                CurrentUser(contact_id=alice),
            )

        assert group_repo.rows == {}
        probe.group_creation_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_resolves_address(self, service, place_service, region_category):
        place_service.resolve_place.return_value = BERLIN

        group = await service.create(
            CreateGroupCommand(
                name="Region Berlin",
                category_id=region_category,
                place_id="place-berlin",
            ),
            None,
        )

        assert group.address == BERLIN
        place_service.resolve_place.assert_awaited_once_with("place-berlin")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ExternalServiceUnavailableError("down", service="place_service"),
            PlaceNotFoundError("unknown", place_id="place-x"),
        ],
    )
    async def test_place_failure_degrades_to_no_address(
        self, service, place_service, probe, region_category, error
    ):
        place_service.resolve_place.side_effect = error

        group = await service.create(
            CreateGroupCommand(
                name="Region X", category_id=region_category, place_id="place-x"
            ),
            None,
        )

        assert group.address is None
        probe.address_resolution_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_runs_in_one_serialized_transaction(
        self, group_service, session, group_repo, region_category
    ):
        await group_service.create(
            CreateGroupCommand(name="Region B", category_id=region_category), None
        )

        assert session.committed == 1
        assert group_repo.serialized_transactions == 1


class TestRead:
    @pytest.mark.asyncio
    async def test_full_read_aggregates_subtree(self, group_service, region_tree):
        region = region_tree["region"]

        view = await group_service.read(region.id, ReadDepth.FULL)

        assert isinstance(view, GroupDetailView)
        assert view.attendance.total_members == 2
        assert view.attendance.total_attendance == 5
        assert view.attendance.percentage_display == "250.00"
        assert view.ancestor_ids == []
        assert view.descendant_ids == [region_tree["chapter"].id]
        assert [r.id for r in view.reports] == ["evt-chapter", "evt-region"]
        assert view.window_start == datetime(2026, 3, 1, tzinfo=UTC)
        assert not view.can_edit

    @pytest.mark.asyncio
    async def test_full_read_of_child(
        self, group_service, membership_repo, region_tree, alice
    ):
        region, chapter = region_tree["region"], region_tree["chapter"]
        await make_leader(membership_repo, region.id, alice)

        view = await group_service.read(
            chapter.id, ReadDepth.FULL, CurrentUser(contact_id=alice)
        )

        assert view.ancestor_ids == [region.id]
        assert view.descendant_ids == []
        assert view.attendance.total_members == 1
        assert view.attendance.total_attendance == 2
        assert view.leader_ids == []
        assert view.can_edit
        assert view.summary.parent_name == "Region A"
        assert view.summary.category_name == "Chapter"

    @pytest.mark.asyncio
    async def test_summary_read(self, group_service, group_repo, region_tree):
        view = await group_service.read(region_tree["region"].id)

        assert isinstance(view, GroupSummaryView)
        assert view.category_name == "Region"
        assert view.parent_name is None
        assert group_repo.pinned_snapshots == 1

    @pytest.mark.asyncio
    async def test_unknown_group(self, group_service):
        with pytest.raises(GroupNotFoundError):
            await group_service.read(GroupId.generate(), ReadDepth.FULL)

    @pytest.mark.asyncio
    async def test_event_store_outage_fails_whole_read(
        self, service, event_store, region_tree, probe
    ):
        event_store.failures_to_raise = 10

        with pytest.raises(ExternalServiceUnavailableError):
            await service.read(region_tree["region"].id, ReadDepth.FULL)

        probe.group_read_failed.assert_called_once()
        probe.group_read.assert_not_called()

    @pytest.mark.asyncio
    async def test_category_store_blip_is_retried(
        self, group_service, category_store, region_tree
    ):
        category_store.failures_to_raise = 1

        view = await group_service.read(region_tree["region"].id)

        assert view.category_name == "Region"
        assert category_store.calls == 2

    @pytest.mark.asyncio
    async def test_category_store_outage_fails_read(
        self, service, category_store, region_tree, probe
    ):
        category_store.failures_to_raise = 10

        with pytest.raises(ExternalServiceUnavailableError):
            await service.read(region_tree["region"].id)

        assert category_store.calls == 2
        probe.group_read.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_full_read_propagates(
        self, group_service, session, event_store, region_tree
    ):
        started = asyncio.Event()

        async def stalled(*args, **kwargs):
            started.set()
            await asyncio.Event().wait()

        event_store.events_in_groups = stalled
        task = asyncio.create_task(
            group_service.read(region_tree["region"].id, ReadDepth.FULL)
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.rolled_back == 1


class TestUpdate:
    @pytest.mark.asyncio
    async def test_reparent_under_own_descendant_is_a_cycle(
        self, group_service, group_repo, membership_repo, region_tree, alice, session
    ):
        region, chapter = region_tree["region"], region_tree["chapter"]
        await make_leader(membership_repo, region.id, alice)
        writes_before = group_repo.writes

        with pytest.raises(CycleDetectedError):
            await group_service.update(
                UpdateGroupCommand(group_id=region.id, parent_id=chapter.id),
                CurrentUser(contact_id=alice),
            )

        assert group_repo.writes == writes_before
        assert group_repo.rows[region.id].parent_id is None
        assert session.rolled_back == 1

    @pytest.mark.asyncio
    async def test_member_cannot_update_until_leader_above(
        self, service, group_repo, membership_repo, region_tree, bob, probe
    ):
        region, chapter = region_tree["region"], region_tree["chapter"]
        command = UpdateGroupCommand(group_id=chapter.id, name="Chapter One")
        writes_before = group_repo.writes

        with pytest.raises(ForbiddenError):
            await service.update(command, CurrentUser(contact_id=bob))

        assert group_repo.writes == writes_before
        probe.mutation_forbidden.assert_called_once_with(
            operation="update", group_id=chapter.id.value, contact_id=bob.value
        )

        await make_leader(membership_repo, region.id, bob)
        updated = await service.update(command, CurrentUser(contact_id=bob))

        assert updated.name == "Chapter One"
        assert group_repo.rows[chapter.id].name == "Chapter One"

    @pytest.mark.asyncio
    async def test_reparent_to_none_makes_root(
        self, group_service, membership_repo, region_tree, alice
    ):
        region, chapter = region_tree["region"], region_tree["chapter"]
        await make_leader(membership_repo, region.id, alice)

        moved = await group_service.update(
            UpdateGroupCommand(group_id=chapter.id, parent_id=None),
            CurrentUser(contact_id=alice),
        )

        assert moved.is_root

    @pytest.mark.asyncio
    async def test_reparent_requires_rights_on_new_parent(
        self,
        group_service,
        tree_store,
        membership_repo,
        region_tree,
        region_category,
        alice,
    ):
        chapter = region_tree["chapter"]
        other = await tree_store.create("Region B", region_category)
        await make_leader(membership_repo, region_tree["region"].id, alice)

        with pytest.raises(ForbiddenError):
            await group_service.update(
                UpdateGroupCommand(group_id=chapter.id, parent_id=other.id),
                CurrentUser(contact_id=alice),
            )

    @pytest.mark.asyncio
    async def test_reparent_to_unknown_parent_is_invalid(
        self, group_service, membership_repo, region_tree, alice
    ):
        await make_leader(membership_repo, region_tree["region"].id, alice)

        with pytest.raises(InvalidParentError):
            await group_service.update(
                UpdateGroupCommand(
                    group_id=region_tree["chapter"].id, parent_id=GroupId.generate()
                ),
                CurrentUser(contact_id=alice),
            )

    @pytest.mark.asyncio
    async def test_lost_race_is_retried(
        self, service, group_repo, membership_repo, region_tree, alice, probe, session
    ):
        region = region_tree["region"]
        await make_leader(membership_repo, region.id, alice)
        group_repo.conflicts_to_raise = 1

        updated = await service.update(
            UpdateGroupCommand(group_id=region.id, name="Region Alpha"),
            CurrentUser(contact_id=alice),
        )

        assert updated.name == "Region Alpha"
        assert group_repo.rows[region.id].name == "Region Alpha"
        assert session.rolled_back == 1
        probe.conflict_retrying.assert_called_once_with("update", 1)

    @pytest.mark.asyncio
    async def test_unchanged_place_is_not_resolved_again(
        self, service, place_service, membership_repo, region_category, alice
    ):
        place_service.resolve_place.return_value = BERLIN
        group = await service.create(
            CreateGroupCommand(
                name="Region Berlin",
                category_id=region_category,
                place_id="place-berlin",
            ),
            None,
        )
        await make_leader(membership_repo, group.id, alice)

        await service.update(
            UpdateGroupCommand(group_id=group.id, place_id="place-berlin"),
            CurrentUser(contact_id=alice),
        )

        assert place_service.resolve_place.await_count == 1

    @pytest.mark.asyncio
    async def test_clearing_place_removes_address(
        self,
        service,
        place_service,
        group_repo,
        membership_repo,
        region_category,
        alice,
    ):
        place_service.resolve_place.return_value = BERLIN
        group = await service.create(
            CreateGroupCommand(
                name="Region Berlin",
                category_id=region_category,
                place_id="place-berlin",
            ),
            None,
        )
        await make_leader(membership_repo, group.id, alice)

        updated = await service.update(
            UpdateGroupCommand(group_id=group.id, place_id=None),
            CurrentUser(contact_id=alice),
        )

        assert updated.address is None
        assert group_repo.rows[group.id].address is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_memberships_and_requests(
        self,
        group_service,
        group_repo,
        membership_repo,
        request_repo,
        region_tree,
        alice,
    ):
        region, chapter = region_tree["region"], region_tree["chapter"]
        await make_leader(membership_repo, region.id, alice)
        await request_repo.add(
            GroupMembershipRequest.submit(
                group_id=chapter.id, contact_id=ContactId(value="contact-dave")
            )
        )

        await group_service.delete(chapter.id, CurrentUser(contact_id=alice))

        assert chapter.id not in group_repo.rows
        assert await membership_repo.count_for_groups({chapter.id}) == 0
        assert await request_repo.list_for_group(chapter.id) == []

    @pytest.mark.asyncio
    async def test_children_move_up(
        self, group_service, group_repo, membership_repo, region_tree, alice
    ):
        region, chapter = region_tree["region"], region_tree["chapter"]
        await make_leader(membership_repo, region.id, alice)

        await group_service.delete(region.id, CurrentUser(contact_id=alice))

        assert group_repo.rows[chapter.id].parent_id is None

    @pytest.mark.asyncio
    async def test_second_delete_is_not_found(
        self, group_service, membership_repo, region_tree, alice
    ):
        region = region_tree["region"]
        chapter = region_tree["chapter"]
        await make_leader(membership_repo, region.id, alice)
        await group_service.delete(chapter.id, CurrentUser(contact_id=alice))

        with pytest.raises(GroupNotFoundError):
            await group_service.delete(chapter.id, CurrentUser(contact_id=alice))

    @pytest.mark.asyncio
    async def test_forbidden_deletes_nothing(
        self, group_service, group_repo, membership_repo, region_tree, bob
    ):
        chapter = region_tree["chapter"]

        with pytest.raises(ForbiddenError):
            await group_service.delete(chapter.id, CurrentUser(contact_id=bob))

        assert chapter.id in group_repo.rows
        assert await membership_repo.count_for_groups({chapter.id}) == 1


class TestSearch:
    @pytest.mark.asyncio
    async def test_unrestricted_without_actor(
        self, group_service, tree_store, region_tree, region_category
    ):
        await tree_store.create("Region B", region_category)

        page = await group_service.search(GroupFilter())

        assert page.total == 3
        assert [v.group.name for v in page.items] == [
            "Chapter 1",
            "Region A",
            "Region B",
        ]

    @pytest.mark.asyncio
    async def test_member_sees_own_groups(
        self, group_service, tree_store, region_tree, region_category, bob
    ):
        await tree_store.create("Region B", region_category)

        page = await group_service.search(
            GroupFilter(), actor=CurrentUser(contact_id=bob)
        )

        assert [v.group.id for v in page.items] == [region_tree["chapter"].id]

    @pytest.mark.asyncio
    async def test_leader_sees_led_subtree(
        self,
        group_service,
        tree_store,
        membership_repo,
        region_tree,
        region_category,
        alice,
    ):
        await tree_store.create("Region B", region_category)
        await make_leader(membership_repo, region_tree["region"].id, alice)

        page = await group_service.search(
            GroupFilter(), actor=CurrentUser(contact_id=alice)
        )

        assert {v.group.id for v in page.items} == {
            region_tree["region"].id,
            region_tree["chapter"].id,
        }

    @pytest.mark.asyncio
    async def test_stranger_sees_nothing(self, group_service, region_tree):
        page = await group_service.search(
            GroupFilter(),
            actor=CurrentUser(contact_id=ContactId(value="contact-stranger")),
        )

        assert page.items == []
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_name_filter_and_parent_names(self, group_service, region_tree):
        page = await group_service.search(GroupFilter(name_contains="chapter"))

        assert page.total == 1
        assert page.items[0].parent_name == "Region A"

    @pytest.mark.asyncio
    async def test_page_size_is_capped(self, group_service, region_tree):
        page = await group_service.search(GroupFilter(), PageRequest(limit=500))

        assert page.limit == 50

    @pytest.mark.asyncio
    async def test_default_page_size(self, group_service, region_tree):
        page = await group_service.search(GroupFilter())

        assert page.limit == 25


class TestLookups:
    @pytest.mark.asyncio
    async def test_name_exists_and_count(self, group_service, region_tree):
        assert await group_service.name_exists("Region A")
        assert not await group_service.name_exists("Region Z")
        assert await group_service.count() == 2
