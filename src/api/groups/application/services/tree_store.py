"""TreeStore: the canonical group set and its parent links.

Traversal is an on-demand parent-pointer walk. An ancestor query costs one
point lookup per level (O(depth)); a descendant query costs one bulk
``list_children`` query per level (O(depth) round trips, O(n) rows). No
closure table is maintained, so structural mutations touch only the rows
they change.

Every ancestor question (reparent cycle check, ``ancestors_of``,
``is_ancestor`` and permission evaluation through ``lineage``) goes through
``_walk_ancestors`` so cycle semantics cannot diverge between them.

The TreeStore never opens transactions. Callers own the transaction and,
for structural mutations, must make it serializable first.
"""

from __future__ import annotations

from typing import AsyncIterator

from groups.application.observability import DefaultTreeStoreProbe, TreeStoreProbe
from groups.domain.aggregates import Group
from groups.domain.value_objects import Address, CategoryId, GroupId, GroupPrivacy
from groups.ports.exceptions import (
    CycleDetectedError,
    GroupNotFoundError,
    InvalidParentError,
)
from groups.ports.repositories import IGroupRepository
from groups.ports.types import GroupFilter, Page, PageRequest


class TreeStore:
    """Tree mutation and traversal over the group repository."""

    def __init__(
        self,
        group_repository: IGroupRepository,
        probe: TreeStoreProbe | None = None,
    ):
        """Initialize TreeStore.

        Args:
            group_repository: Repository owning group records
            probe: Optional domain probe for observability
        """
        self._groups = group_repository
        self._probe = probe or DefaultTreeStoreProbe()

    async def get(self, group_id: GroupId, operation: str = "get") -> Group:
        """Load a group.

        Raises:
            GroupNotFoundError: If the id does not resolve
        """
        group = await self._groups.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(
                f"Group {group_id} not found",
                group_id=str(group_id),
                operation=operation,
            )
        return group

    async def create(
        self,
        name: str,
        category_id: CategoryId,
        parent_id: GroupId | None = None,
        *,
        privacy: GroupPrivacy | None = None,
        details: str | None = None,
        meta_data: str | None = None,
        address: Address | None = None,
    ) -> Group:
        """Insert a new group, optionally under an existing parent.

        A new node has no descendants, so no cycle is possible here; only
        the parent's existence is checked.

        Returns:
            The persisted Group

        Raises:
            InvalidParentError: If ``parent_id`` does not resolve
            ValueError: If the attributes are invalid
        """
        if parent_id is not None:
            await self._require_parent(parent_id, group_id=None, operation="create")

        group = Group.create(
            name=name,
            category_id=category_id,
            parent_id=parent_id,
            privacy=privacy,
            details=details,
            meta_data=meta_data,
            address=address,
        )
        await self._groups.save(group)
        self._probe.group_inserted(
            group_id=group.id.value,
            parent_id=parent_id.value if parent_id else None,
        )
        return group

    async def update(self, group: Group) -> None:
        """Persist attribute changes of an existing group.

        Parent changes must go through ``reparent``.
        """
        await self._groups.save(group)

    async def reparent(self, group_id: GroupId, new_parent_id: GroupId | None) -> Group:
        """Move a group (and its subtree) under another parent.

        The new parent's ancestor chain is walked before anything is
        written: if the group appears on it (or is the new parent itself)
        the move would close a cycle.

        Args:
            group_id: Group to move
            new_parent_id: New parent, or None to make the group a root

        Returns:
            The moved Group

        Raises:
            GroupNotFoundError: If the group does not resolve
            InvalidParentError: If the new parent does not resolve
            CycleDetectedError: If the new parent is the group or one of its
                descendants
        """
        group = await self.get(group_id, operation="reparent")
        old_parent_id = group.parent_id
        if new_parent_id == old_parent_id:
            return group

        if new_parent_id is not None:
            if new_parent_id == group_id:
                self._reject_cycle(group_id, new_parent_id)
            parent = await self._require_parent(
                new_parent_id, group_id=group_id, operation="reparent"
            )
            async for ancestor in self._walk_ancestors(parent):
                if ancestor.id == group_id:
                    self._reject_cycle(group_id, new_parent_id)

        group.move_to(new_parent_id)
        await self._groups.save(group)
        self._probe.group_reparented(
            group_id=group_id.value,
            old_parent_id=old_parent_id.value if old_parent_id else None,
            new_parent_id=new_parent_id.value if new_parent_id else None,
        )
        return group

    async def delete(self, group_id: GroupId) -> list[Group]:
        """Remove a group, moving its direct children up to its parent.

        Children of a deleted root become roots. The subtree below each child
        is untouched. Memberships and requests are not owned here; the caller
        removes them in the same transaction.

        Returns:
            The children that were moved

        Raises:
            GroupNotFoundError: If the group does not resolve (including a
                second delete of the same id)
        """
        group = await self.get(group_id, operation="delete")
        children = await self._groups.list_children({group_id})
        for child in children:
            child.move_to(group.parent_id)
            await self._groups.save(child)

        deleted = await self._groups.delete(group)
        if not deleted:
            raise GroupNotFoundError(
                f"Group {group_id} not found",
                group_id=group_id.value,
                operation="delete",
            )
        self._probe.group_removed(group_id=group_id.value, children_moved=len(children))
        return children

    async def ancestors_of(self, group_id: GroupId) -> list[Group]:
        """Ancestor chain, nearest first, ending at a root.

        Never contains the group itself.

        Raises:
            GroupNotFoundError: If the group does not resolve
            CycleDetectedError: If the stored chain loops
        """
        group = await self.get(group_id, operation="ancestors")
        return [ancestor async for ancestor in self._walk_ancestors(group)]

    async def lineage(self, group_id: GroupId) -> list[Group]:
        """The group followed by its ancestors, nearest first."""
        group = await self.get(group_id, operation="lineage")
        return [group] + [ancestor async for ancestor in self._walk_ancestors(group)]

    async def is_ancestor(self, candidate_id: GroupId, group_id: GroupId) -> bool:
        """Whether ``candidate_id`` is a proper ancestor of ``group_id``."""
        group = await self.get(group_id, operation="is_ancestor")
        async for ancestor in self._walk_ancestors(group):
            if ancestor.id == candidate_id:
                return True
        return False

    async def children_of(self, group_id: GroupId) -> list[Group]:
        """Direct children of a group."""
        await self.get(group_id, operation="children")
        return await self._groups.list_children({group_id})

    async def descendants_of(self, group_id: GroupId) -> list[Group]:
        """All transitive children, breadth first, excluding the group.

        Raises:
            GroupNotFoundError: If the group does not resolve
        """
        await self.get(group_id, operation="descendants")
        return await self._expand({group_id})

    async def subtree_ids(self, group_id: GroupId) -> list[GroupId]:
        """The group id followed by every descendant id."""
        descendants = await self.descendants_of(group_id)
        return [group_id] + [d.id for d in descendants]

    async def subtrees_ids(self, root_ids: set[GroupId]) -> set[GroupId]:
        """Union of the subtrees rooted at each id (unknown ids are skipped)."""
        roots = await self._groups.get_many(root_ids)
        found = {root.id for root in roots}
        return found | {d.id for d in await self._expand(found)}

    async def find(self, criteria: GroupFilter, page: PageRequest) -> Page[Group]:
        """Search groups.

        An empty allow-list matches nothing and is answered without a query.
        """
        if criteria.restrict_to_ids is not None and not criteria.restrict_to_ids:
            return Page(items=[], total=0, skip=page.skip, limit=page.limit)
        return await self._groups.find(criteria, page)

    async def count(self) -> int:
        """Total number of groups."""
        return await self._groups.count()

    async def name_exists(self, name: str) -> bool:
        """Whether a group with exactly this name exists."""
        return await self._groups.exists_by_name(name.strip())

    async def _walk_ancestors(self, group: Group) -> AsyncIterator[Group]:
        """Yield the ancestors of ``group`` nearest first.

        A repeated id means the stored links loop; the walk stops with
        CycleDetectedError instead of running forever. A parent id that no
        longer resolves ends the chain.
        """
        seen = {group.id}
        parent_id = group.parent_id
        while parent_id is not None:
            if parent_id in seen:
                self._probe.corrupted_chain_detected(
                    group_id=group.id.value, repeated_id=parent_id.value
                )
                raise CycleDetectedError(
                    f"Ancestor chain of group {group.id} loops at {parent_id}",
                    group_id=group.id.value,
                    parent_id=parent_id.value,
                    operation="walk_ancestors",
                )
            seen.add(parent_id)
            parent = await self._groups.get_by_id(parent_id)
            if parent is None:
                return
            yield parent
            parent_id = parent.parent_id

    async def _expand(self, frontier: set[GroupId]) -> list[Group]:
        seen = set(frontier)
        found: list[Group] = []
        while frontier:
            children = await self._groups.list_children(frontier)
            frontier = set()
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                found.append(child)
                frontier.add(child.id)
        return found

    async def _require_parent(
        self, parent_id: GroupId, group_id: GroupId | None, operation: str
    ) -> Group:
        parent = await self._groups.get_by_id(parent_id)
        if parent is None:
            self._probe.invalid_parent_rejected(
                parent_id=parent_id.value,
                group_id=group_id.value if group_id else None,
            )
            raise InvalidParentError(
                f"Parent group {parent_id} does not exist",
                parent_id=parent_id.value,
                group_id=group_id.value if group_id else None,
                operation=operation,
            )
        return parent

    def _reject_cycle(self, group_id: GroupId, parent_id: GroupId) -> None:
        self._probe.cycle_rejected(group_id=group_id.value, parent_id=parent_id.value)
        raise CycleDetectedError(
            f"Moving group {group_id} under {parent_id} would create a cycle",
            group_id=group_id.value,
            parent_id=parent_id.value,
            operation="reparent",
        )
