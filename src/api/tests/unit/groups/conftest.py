"""Shared fixtures for the groups unit tests.

In-memory implementations of the ports let tree, permission and
aggregation scenarios run end to end without a database.
"""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime

import pytest
import pytest_asyncio

from groups.application.services import (
    AggregationEngine,
    GroupService,
    MembershipIndex,
    MembershipService,
    PermissionEvaluator,
    TreeStore,
)
from groups.domain.aggregates import Group, GroupMembershipRequest
from groups.domain.value_objects import (
    CategoryId,
    ContactId,
    GroupId,
    GroupMembership,
    GroupRole,
    MembershipRequestId,
)
from groups.ports.exceptions import (
    ConflictRetryableError,
    DuplicateMembershipError,
    DuplicateMembershipRequestError,
    ExternalServiceUnavailableError,
)
from groups.ports.types import EventRecord, GroupFilter, Page, PageRequest
from infrastructure.settings import GroupsSettings


class InMemoryGroupRepository:
    """IGroupRepository over a dict, storing copies like a real table."""

    def __init__(self) -> None:
        self.rows: dict[GroupId, Group] = {}
        self.saves = 0
        self.deletes = 0
        self.conflicts_to_raise = 0
        self.serialized_transactions = 0
        self.pinned_snapshots = 0

    async def save(self, group: Group) -> None:
        if self.conflicts_to_raise:
            self.conflicts_to_raise -= 1
            raise ConflictRetryableError(
                f"Group {group.id} was changed concurrently",
                group_id=group.id.value,
                operation="save",
            )
        stored = self.rows.get(group.id)
        if stored is not None and stored.version != group.version:
            raise ConflictRetryableError(
                f"Group {group.id} was changed concurrently",
                group_id=group.id.value,
                operation="save",
            )
        group.version = (stored.version if stored else 0) + 1
        self.rows[group.id] = dataclasses.replace(group)
        self.saves += 1

    async def get_by_id(self, group_id: GroupId) -> Group | None:
        stored = self.rows.get(group_id)
        return dataclasses.replace(stored) if stored is not None else None

    async def get_many(self, group_ids: set[GroupId]) -> list[Group]:
        found = [dataclasses.replace(g) for i, g in self.rows.items() if i in group_ids]
        return sorted(found, key=lambda g: (g.name, g.id.value))

    async def list_children(self, parent_ids: set[GroupId]) -> list[Group]:
        found = [
            dataclasses.replace(g)
            for g in self.rows.values()
            if g.parent_id in parent_ids
        ]
        return sorted(found, key=lambda g: (g.name, g.id.value))

    async def find(self, criteria: GroupFilter, page: PageRequest) -> Page[Group]:
        matches = []
        for group in self.rows.values():
            if (
                criteria.name_contains
                and criteria.name_contains.lower() not in group.name.lower()
            ):
                continue
            if (
                criteria.category_ids is not None
                and group.category_id not in criteria.category_ids
            ):
                continue
            if (
                criteria.restrict_to_ids is not None
                and group.id not in criteria.restrict_to_ids
            ):
                continue
            matches.append(dataclasses.replace(group))
        matches.sort(key=lambda g: (g.name, g.id.value))
        items = matches[page.skip : page.skip + page.limit]
        return Page(items=items, total=len(matches), skip=page.skip, limit=page.limit)

    async def count(self) -> int:
        return len(self.rows)

    async def exists_by_name(self, name: str) -> bool:
        return any(g.name == name for g in self.rows.values())

    async def delete(self, group: Group) -> bool:
        if group.id not in self.rows:
            return False
        del self.rows[group.id]
        self.deletes += 1
        return True

    async def serialize_structural_changes(self) -> None:
        self.serialized_transactions += 1

    async def pin_snapshot(self) -> None:
        self.pinned_snapshots += 1

    @property
    def writes(self) -> int:
        return self.saves + self.deletes


class InMemoryMembershipRepository:
    """IMembershipRepository keyed by (group_id, contact_id)."""

    def __init__(self) -> None:
        self.rows: dict[tuple[GroupId, ContactId], GroupRole] = {}

    async def add(self, membership: GroupMembership) -> None:
        key = (membership.group_id, membership.contact_id)
        if key in self.rows:
            raise DuplicateMembershipError(
                "already a member", group_id=membership.group_id.value
            )
        self.rows[key] = membership.role

    async def get(
        self, group_id: GroupId, contact_id: ContactId
    ) -> GroupMembership | None:
        role = self.rows.get((group_id, contact_id))
        if role is None:
            return None
        return GroupMembership(group_id=group_id, contact_id=contact_id, role=role)

    async def update_role(
        self, group_id: GroupId, contact_id: ContactId, role: GroupRole
    ) -> bool:
        if (group_id, contact_id) not in self.rows:
            return False
        self.rows[(group_id, contact_id)] = role
        return True

    async def remove(self, group_id: GroupId, contact_id: ContactId) -> bool:
        return self.rows.pop((group_id, contact_id), None) is not None

    async def remove_all_for_group(self, group_id: GroupId) -> int:
        keys = [key for key in self.rows if key[0] == group_id]
        for key in keys:
            del self.rows[key]
        return len(keys)

    async def list_for_groups(self, group_ids: set[GroupId]) -> list[GroupMembership]:
        return [
            GroupMembership(group_id=g, contact_id=c, role=role)
            for (g, c), role in sorted(
                self.rows.items(), key=lambda item: (item[0][0].value, item[0][1].value)
            )
            if g in group_ids
        ]

    async def count_for_groups(self, group_ids: set[GroupId]) -> int:
        return sum(1 for (g, _) in self.rows if g in group_ids)

    async def leader_group_ids(
        self, contact_id: ContactId, group_ids: set[GroupId]
    ) -> set[GroupId]:
        return {
            g
            for (g, c), role in self.rows.items()
            if c == contact_id and g in group_ids and role == GroupRole.LEADER
        }

    async def group_ids_for_contact(
        self, contact_id: ContactId
    ) -> dict[GroupId, GroupRole]:
        return {g: role for (g, c), role in self.rows.items() if c == contact_id}


class InMemoryMembershipRequestRepository:
    """IMembershipRequestRepository over a dict."""

    def __init__(self) -> None:
        self.rows: dict[MembershipRequestId, GroupMembershipRequest] = {}

    async def add(self, request: GroupMembershipRequest) -> None:
        for existing in self.rows.values():
            if (existing.group_id, existing.contact_id) == (
                request.group_id,
                request.contact_id,
            ):
                raise DuplicateMembershipRequestError(
                    "already pending", group_id=request.group_id.value
                )
        self.rows[request.id] = request

    async def get_by_id(
        self, request_id: MembershipRequestId
    ) -> GroupMembershipRequest | None:
        return self.rows.get(request_id)

    async def get_pending(
        self, group_id: GroupId, contact_id: ContactId
    ) -> GroupMembershipRequest | None:
        for request in self.rows.values():
            if request.group_id == group_id and request.contact_id == contact_id:
                return request
        return None

    async def list_for_group(self, group_id: GroupId) -> list[GroupMembershipRequest]:
        found = [r for r in self.rows.values() if r.group_id == group_id]
        return sorted(found, key=lambda r: (r.submitted_at, r.id.value))

    async def delete(self, request: GroupMembershipRequest) -> bool:
        return self.rows.pop(request.id, None) is not None

    async def delete_all_for_group(self, group_id: GroupId) -> int:
        doomed = [i for i, r in self.rows.items() if r.group_id == group_id]
        for request_id in doomed:
            del self.rows[request_id]
        return len(doomed)


class FakeEventStore:
    """IEventStore over a list of records, with injectable outages."""

    def __init__(self) -> None:
        self.events: list[EventRecord] = []
        self.failures_to_raise = 0
        self.calls = 0

    async def events_in_groups(
        self,
        group_ids: set[GroupId],
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> list[EventRecord]:
        self.calls += 1
        if self.failures_to_raise:
            self.failures_to_raise -= 1
            raise ExternalServiceUnavailableError(
                "event store down", service="event_store"
            )
        return [
            e
            for e in self.events
            if e.group_id in group_ids
            and (window_start is None or e.start_date >= window_start)
            and (window_end is None or e.end_date <= window_end)
        ]


class FakeCategoryStore:
    """ICategoryStore over a dict, with injectable outages."""

    def __init__(self) -> None:
        self.names: dict[CategoryId, str] = {}
        self.failures_to_raise = 0
        self.calls = 0

    async def names_for(self, category_ids: set[CategoryId]) -> dict[CategoryId, str]:
        self.calls += 1
        if self.failures_to_raise:
            self.failures_to_raise -= 1
            raise ExternalServiceUnavailableError(
                "category store down", service="category_store"
            )
        return {c: n for c, n in self.names.items() if c in category_ids}


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


class _FakeTransaction:
    def __init__(self, session: FakeSession) -> None:
        self._session = session

    async def __aenter__(self) -> None:
        self._session.begun += 1

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self._session.committed += 1
        else:
            self._session.rolled_back += 1
        return False


class FakeSession:
    """Stands in for AsyncSession: only ``begin()`` is used by the services."""

    def __init__(self) -> None:
        self.begun = 0
        self.committed = 0
        self.rolled_back = 0

    def begin(self) -> _FakeTransaction:
        return _FakeTransaction(self)


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def group_repo() -> InMemoryGroupRepository:
    return InMemoryGroupRepository()


@pytest.fixture
def membership_repo() -> InMemoryMembershipRepository:
    return InMemoryMembershipRepository()


@pytest.fixture
def request_repo() -> InMemoryMembershipRequestRepository:
    return InMemoryMembershipRequestRepository()


@pytest.fixture
def event_store() -> FakeEventStore:
    return FakeEventStore()


@pytest.fixture
def category_store() -> FakeCategoryStore:
    store = FakeCategoryStore()
    store.names[CategoryId(value="region")] = "Region"
    store.names[CategoryId(value="chapter")] = "Chapter"
    return store


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def groups_settings() -> GroupsSettings:
    return GroupsSettings(
        search_default_limit=25,
        search_max_limit=50,
        conflict_retry_attempts=3,
        external_retry_attempts=2,
        external_backoff_seconds=0,
    )


@pytest.fixture
def tree_store(group_repo) -> TreeStore:
    return TreeStore(group_repository=group_repo)


@pytest.fixture
def membership_index(membership_repo) -> MembershipIndex:
    return MembershipIndex(membership_repository=membership_repo)


@pytest.fixture
def permissions(tree_store, membership_index) -> PermissionEvaluator:
    return PermissionEvaluator(tree_store=tree_store, membership_index=membership_index)


@pytest.fixture
def aggregation(tree_store, membership_index, event_store) -> AggregationEngine:
    return AggregationEngine(
        tree_store=tree_store,
        membership_index=membership_index,
        event_store=event_store,
        retry_attempts=2,
        backoff_seconds=0,
    )


@pytest.fixture
def group_service(
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
) -> GroupService:
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
        settings=groups_settings,
    )


@pytest.fixture
def membership_service(
    session, tree_store, membership_index, permissions, request_repo
) -> MembershipService:
    return MembershipService(
        session=session,
        tree_store=tree_store,
        membership_index=membership_index,
        permissions=permissions,
        request_repository=request_repo,
    )


@pytest.fixture
def region_category() -> CategoryId:
    return CategoryId(value="region")


@pytest.fixture
def chapter_category() -> CategoryId:
    return CategoryId(value="chapter")


@pytest.fixture
def alice() -> ContactId:
    return ContactId(value="contact-alice")


@pytest.fixture
def bob() -> ContactId:
    return ContactId(value="contact-bob")


@pytest_asyncio.fixture
async def region_tree(
    tree_store, membership_repo, event_store, region_category, chapter_category, bob
) -> dict[str, Group]:
    """Region A (root) with Chapter 1 below it.

    One Member row in each group (Bob in Chapter 1), and this month's
    events draw 3 attendees in Region A and 2 in Chapter 1.
    """
    region = await tree_store.create("Region A", region_category)
    chapter = await tree_store.create("Chapter 1", chapter_category, region.id)

    await membership_repo.add(
        GroupMembership(
            group_id=region.id,
            contact_id=ContactId(value="contact-carol"),
            role=GroupRole.MEMBER,
        )
    )
    await membership_repo.add(
        GroupMembership(group_id=chapter.id, contact_id=bob, role=GroupRole.MEMBER)
    )

    event_store.events.extend(
        [
            EventRecord(
                event_id="evt-region",
                group_id=region.id,
                name="Regional meetup",
                category="meetup",
                start_date=datetime(2026, 3, 10, 18, 0, tzinfo=UTC),
                end_date=datetime(2026, 3, 10, 20, 0, tzinfo=UTC),
                attendance_count=3,
            ),
            EventRecord(
                event_id="evt-chapter",
                group_id=chapter.id,
                name="Chapter night",
                category=None,
                start_date=datetime(2026, 3, 5, 18, 0, tzinfo=UTC),
                end_date=datetime(2026, 3, 5, 21, 0, tzinfo=UTC),
                attendance_count=2,
            ),
            EventRecord(
                event_id="evt-last-month",
                group_id=chapter.id,
                name="February social",
                category=None,
                start_date=datetime(2026, 2, 20, 18, 0, tzinfo=UTC),
                end_date=datetime(2026, 2, 20, 21, 0, tzinfo=UTC),
                attendance_count=40,
            ),
        ]
    )
    return {"region": region, "chapter": chapter}
