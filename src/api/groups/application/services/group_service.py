"""Group application service for the groups bounded context.

Composes the TreeStore, MembershipIndex, PermissionEvaluator and
AggregationEngine into the five logical operations: create, read, update,
delete and search. Every mutation runs Authorize, Validate, Mutate, Enrich
and Respond inside one serializable transaction, so an authorization
failure leaves nothing written.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from groups.application.observability import (
    DefaultGroupServiceProbe,
    GroupServiceProbe,
)
from groups.application.retry import conflict_retrying, external_read_retrying
from groups.application.services.aggregation_engine import AggregationEngine
from groups.application.services.membership_index import MembershipIndex
from groups.application.services.permission_evaluator import PermissionEvaluator
from groups.application.services.tree_store import TreeStore
from groups.application.value_objects import (
    UNSET,
    CreateGroupCommand,
    CurrentUser,
    GroupDetailView,
    GroupSummaryView,
    ReadDepth,
    Unset,
    UpdateGroupCommand,
    address_place_id,
)
from groups.domain.aggregates import Group
from groups.domain.value_objects import (
    Address,
    CategoryId,
    ContactId,
    GroupId,
    GroupRole,
)
from groups.ports.exceptions import (
    ConflictRetryableError,
    ExternalServiceUnavailableError,
    ForbiddenError,
    GroupNotFoundError,
    InvalidParentError,
    PlaceNotFoundError,
)
from groups.ports.repositories import IGroupRepository, IMembershipRequestRepository
from groups.ports.services import Clock, ICategoryStore, IPlaceService
from groups.ports.types import GroupFilter, Page, PageRequest
from infrastructure.database.exceptions import is_concurrency_conflict
from infrastructure.settings import GroupsSettings, get_groups_settings

T = TypeVar("T")


def calendar_month_window(moment: datetime) -> tuple[datetime, datetime]:
    """First and last instant of the calendar month containing ``moment``.

    Both ends are inclusive; the end is the last microsecond of the month.
    """
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - timedelta(microseconds=1)


class GroupService:
    """Application service for the group hierarchy.

    Manages database transactions. Structural mutations are retried as a
    whole (re-read, re-check, re-write) when a concurrent writer wins.
    """

    def __init__(
        self,
        session: AsyncSession,
        group_repository: IGroupRepository,
        request_repository: IMembershipRequestRepository,
        tree_store: TreeStore,
        membership_index: MembershipIndex,
        permissions: PermissionEvaluator,
        aggregation: AggregationEngine,
        category_store: ICategoryStore,
        clock: Clock,
        place_service: IPlaceService | None = None,
        settings: GroupsSettings | None = None,
        probe: GroupServiceProbe | None = None,
    ):
        """Initialize GroupService with dependencies.

        Args:
            session: Database session for transaction management
            group_repository: Group persistence (transaction-level hooks)
            request_repository: Pending membership requests (removed on delete)
            tree_store: Tree mutation and traversal
            membership_index: Membership queries
            permissions: Inherited Leader checks
            aggregation: Subtree attendance statistics
            category_store: Resolves category names for display
            clock: Source of "now" for the current-month window
            place_service: Optional place lookup for addresses
            settings: Behavioural settings (page sizes, retry bounds)
            probe: Optional domain probe for observability
        """
        self._session = session
        self._groups = group_repository
        self._requests = request_repository
        self._tree = tree_store
        self._memberships = membership_index
        self._permissions = permissions
        self._aggregation = aggregation
        self._categories = category_store
        self._clock = clock
        self._places = place_service
        self._settings = settings or get_groups_settings()
        self._probe = probe or DefaultGroupServiceProbe()

    async def create(
        self,
        command: CreateGroupCommand,
        actor: CurrentUser | None,
        *,
        seed_mode: bool = False,
    ) -> Group:
        """Create a group, as a root or under an existing parent.

        Creating under a parent requires the actor to be able to modify the
        parent. ``seed_mode`` skips that check and is only meant for initial
        data population.

        Returns:
            The created Group aggregate

        Raises:
            ForbiddenError: If the actor may not modify the parent
            InvalidParentError: If the parent does not exist
            ValueError: If the attributes are invalid
        """
        address = await self._resolve_address(command.place_id)
        actor_id = _contact_of(actor)

        async def create_once() -> Group:
            if command.parent_id is not None:
                await self._authorize_parent(
                    actor_id, command.parent_id, "create", seed_mode=seed_mode
                )
            return await self._tree.create(
                name=command.name,
                category_id=command.category_id,
                parent_id=command.parent_id,
                privacy=command.privacy,
                details=command.details,
                meta_data=command.meta_data,
                address=address,
            )

        try:
            group = await self._mutate("create", create_once)
        except Exception as e:
            self._probe.group_creation_failed(name=command.name, error=str(e))
            raise

        self._probe.group_created(
            group_id=group.id.value,
            name=group.name,
            parent_id=group.parent_id.value if group.parent_id else None,
            creator_id=actor_id.value if actor_id else None,
        )
        return group

    async def read(
        self,
        group_id: GroupId,
        depth: ReadDepth = ReadDepth.SUMMARY,
        actor: CurrentUser | None = None,
    ) -> GroupSummaryView | GroupDetailView:
        """Assemble a view of a group.

        The summary is the flat record with category and parent names. The
        full view also carries the ancestor and descendant ids, the subtree's
        attendance for the current calendar month, the group's leaders, the
        month's reports and whether ``actor`` may edit the group.

        All reads share one snapshot. If any part fails the whole read
        fails; a partially enriched view is never returned.

        Raises:
            GroupNotFoundError: If the group does not exist
            ExternalServiceUnavailableError: If an external store stays down
        """
        try:
            async with self._session.begin():
                await self._groups.pin_snapshot()
                group = await self._tree.get(group_id, operation="read")
                summary = (await self._summaries([group]))[0]
                if depth == ReadDepth.SUMMARY:
                    view: GroupSummaryView | GroupDetailView = summary
                else:
                    view = await self._detail(summary, actor)
        except GroupNotFoundError:
            raise
        except Exception as e:
            self._probe.group_read_failed(
                group_id=group_id.value, depth=depth.value, error=str(e)
            )
            raise

        self._probe.group_read(group_id=group_id.value, depth=depth.value)
        return view

    async def update(self, command: UpdateGroupCommand, actor: CurrentUser) -> Group:
        """Update a group's attributes and, optionally, its parent.

        The actor must be able to modify the group and, when the parent
        changes, the new parent too. The address is re-resolved only when
        the place id changes.

        Raises:
            GroupNotFoundError: If the group does not exist
            ForbiddenError: If the actor may not modify the group or the new parent
            InvalidParentError: If the new parent does not exist
            CycleDetectedError: If the new parent is inside the group's subtree
            ValueError: If the attributes are invalid
        """
        group_id = command.group_id
        actor_id = actor.contact_id

        async with self._session.begin():
            await self._assert_can_modify(actor_id, group_id, "update")
            current = await self._tree.get(group_id, operation="update")

        new_address: Address | None | Unset = UNSET
        if not isinstance(command.place_id, Unset) and command.place_id != (
            address_place_id(current.address)
        ):
            new_address = await self._resolve_address(command.place_id)

        async def update_once() -> tuple[Group, list[str]]:
            await self._assert_can_modify(actor_id, group_id, "update")
            group = await self._tree.get(group_id, operation="update")
            changed: list[str] = []

            new_parent = command.parent_id
            if not isinstance(new_parent, Unset) and new_parent != group.parent_id:
                if new_parent is not None:
                    await self._authorize_parent(actor_id, new_parent, "reparent")
                group = await self._tree.reparent(group_id, new_parent)
                changed.append("parent_id")

            attributes = _apply_attributes(group, command, new_address)
            if attributes:
                await self._tree.update(group)
            return group, changed + attributes

        group, changed = await self._mutate("update", update_once)
        self._probe.group_updated(group_id=group_id.value, changed=changed)
        return group

    async def delete(self, group_id: GroupId, actor: CurrentUser) -> None:
        """Delete a group.

        Children move up to the group's parent. The group's memberships and
        pending membership requests are removed with it.

        Raises:
            GroupNotFoundError: If the group does not exist (also on a
                repeated delete)
            ForbiddenError: If the actor may not modify the group
        """

        async def delete_once() -> None:
            await self._assert_can_modify(actor.contact_id, group_id, "delete")
            await self._memberships.remove_group(group_id)
            await self._requests.delete_all_for_group(group_id)
            await self._tree.delete(group_id)

        await self._mutate("delete", delete_once)
        self._probe.group_deleted(
            group_id=group_id.value, deleted_by=actor.contact_id.value
        )

    async def search(
        self,
        criteria: GroupFilter,
        page: PageRequest | None = None,
        actor: CurrentUser | None = None,
    ) -> Page[GroupSummaryView]:
        """Search groups by name and category.

        With an actor, results are limited to the groups the actor belongs
        to plus every group in the subtrees the actor leads. The page size is
        capped by configuration.
        """
        page = self._bounded_page(page)
        async with self._session.begin():
            await self._groups.pin_snapshot()
            restricted = actor is not None
            if actor is not None:
                allowed = await self._accessible_group_ids(actor.contact_id)
                if criteria.restrict_to_ids is not None:
                    allowed &= set(criteria.restrict_to_ids)
                criteria = GroupFilter(
                    name_contains=criteria.name_contains,
                    category_ids=criteria.category_ids,
                    restrict_to_ids=frozenset(allowed),
                )
            found = await self._tree.find(criteria, page)
            items = await self._summaries(found.items)

        self._probe.search_executed(total=found.total, restricted=restricted)
        return Page(items=items, total=found.total, skip=found.skip, limit=found.limit)

    async def name_exists(self, name: str) -> bool:
        """Whether a group with exactly this name exists."""
        async with self._session.begin():
            return await self._tree.name_exists(name)

    async def count(self) -> int:
        """Total number of groups."""
        async with self._session.begin():
            return await self._tree.count()

    async def _mutate(self, operation: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work`` in a serializable transaction, retrying lost races."""
        async for attempt in conflict_retrying(
            self._settings.conflict_retry_attempts,
            on_retry=lambda n, _: self._probe.conflict_retrying(operation, n),
        ):
            with attempt:
                try:
                    async with self._session.begin():
                        await self._groups.serialize_structural_changes()
                        return await work()
                except SQLAlchemyError as e:
                    if is_concurrency_conflict(e):
                        raise ConflictRetryableError(
                            f"A concurrent change interrupted {operation}; try again",
                            operation=operation,
                        ) from e
                    raise
        raise AssertionError("unreachable: retry policy re-raises")

    async def _assert_can_modify(
        self,
        actor_id: ContactId | None,
        group_id: GroupId,
        operation: str,
        *,
        seed_mode: bool = False,
    ) -> None:
        try:
            await self._permissions.assert_can_modify(
                actor_id, group_id, operation=operation, seed_mode=seed_mode
            )
        except ForbiddenError:
            self._probe.mutation_forbidden(
                operation=operation,
                group_id=group_id.value,
                contact_id=actor_id.value if actor_id else None,
            )
            raise

    async def _authorize_parent(
        self,
        actor_id: ContactId | None,
        parent_id: GroupId,
        operation: str,
        *,
        seed_mode: bool = False,
    ) -> None:
        try:
            await self._assert_can_modify(
                actor_id, parent_id, operation, seed_mode=seed_mode
            )
        except GroupNotFoundError as e:
            raise InvalidParentError(
                f"Parent group {parent_id} does not exist",
                parent_id=parent_id.value,
                operation=operation,
            ) from e

    async def _detail(
        self, summary: GroupSummaryView, actor: CurrentUser | None
    ) -> GroupDetailView:
        group_id = summary.group.id
        ancestors = await self._tree.ancestors_of(group_id)
        descendants = await self._tree.descendants_of(group_id)
        window_start, window_end = calendar_month_window(self._clock.now())
        attendance, reports = await self._aggregation.summarize(
            group_id, window_start, window_end
        )
        leaders = await self._memberships.leaders_of(group_id)
        can_edit = await self._permissions.can_modify(_contact_of(actor), group_id)
        return GroupDetailView(
            summary=summary,
            ancestor_ids=[a.id for a in ancestors],
            descendant_ids=[d.id for d in descendants],
            attendance=attendance,
            leader_ids=leaders,
            can_edit=can_edit,
            reports=reports,
            window_start=window_start,
            window_end=window_end,
        )

    async def _summaries(self, groups: list[Group]) -> list[GroupSummaryView]:
        if not groups:
            return []
        parent_ids = {g.parent_id for g in groups if g.parent_id is not None}
        parents: dict[GroupId, Group] = {}
        if parent_ids:
            parents = {p.id: p for p in await self._groups.get_many(parent_ids)}
        names = await self._category_names({g.category_id for g in groups})

        views = []
        for g in groups:
            parent = parents.get(g.parent_id) if g.parent_id is not None else None
            views.append(
                GroupSummaryView(
                    group=g,
                    category_name=names.get(g.category_id),
                    parent_name=parent.name if parent is not None else None,
                )
            )
        return views

    async def _category_names(
        self, category_ids: set[CategoryId]
    ) -> dict[CategoryId, str]:
        names: dict[CategoryId, str] = {}
        async for attempt in external_read_retrying(
            self._settings.external_retry_attempts,
            self._settings.external_backoff_seconds,
        ):
            with attempt:
                names = await self._categories.names_for(category_ids)
        return names

    async def _accessible_group_ids(self, contact_id: ContactId) -> set[GroupId]:
        member_of = await self._memberships.group_ids_for(contact_id)
        led = await self._memberships.group_ids_for(contact_id, role=GroupRole.LEADER)
        return member_of | await self._tree.subtrees_ids(led)

    async def _resolve_address(self, place_id: str | None) -> Address | None:
        """Resolve a place id; a failed lookup degrades to no address."""
        if not place_id or self._places is None:
            return None
        try:
            return await self._places.resolve_place(place_id)
        except (ExternalServiceUnavailableError, PlaceNotFoundError) as e:
            self._probe.address_resolution_failed(place_id=place_id, error=str(e))
            return None

    def _bounded_page(self, page: PageRequest | None) -> PageRequest:
        if page is None:
            return PageRequest(skip=0, limit=self._settings.search_default_limit)
        if page.limit > self._settings.search_max_limit:
            return PageRequest(skip=page.skip, limit=self._settings.search_max_limit)
        return page


def _contact_of(actor: CurrentUser | None) -> ContactId | None:
    return actor.contact_id if actor is not None else None


def _apply_attributes(
    group: Group,
    command: UpdateGroupCommand,
    new_address: Address | None | Unset,
) -> list[str]:
    """Apply the non-structural fields of an update; return what changed."""
    changed: list[str] = []
    if not isinstance(command.name, Unset) and command.name.strip() != group.name:
        group.rename(command.name)
        changed.append("name")
    if (
        not isinstance(command.category_id, Unset)
        and command.category_id != group.category_id
    ):
        group.change_category(command.category_id)
        changed.append("category_id")
    if not isinstance(command.privacy, Unset) and command.privacy != group.privacy:
        group.change_privacy(command.privacy)
        changed.append("privacy")

    details = group.details if isinstance(command.details, Unset) else command.details
    meta_data = (
        group.meta_data if isinstance(command.meta_data, Unset) else command.meta_data
    )
    if details != group.details or meta_data != group.meta_data:
        group.describe(details, meta_data)
        changed.append("details")

    if not isinstance(new_address, Unset) and new_address != group.address:
        group.relocate(new_address)
        changed.append("address")
    return changed
