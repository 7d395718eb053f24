"""Dependency injection for the groups bounded context.

Composes infrastructure resources (database sessions, external stores,
the place client) with groups-specific components (repositories, services).
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from groups.application.observability import (
    AggregationProbe,
    DefaultAggregationProbe,
    DefaultGroupServiceProbe,
    DefaultMembershipServiceProbe,
    DefaultPermissionProbe,
    DefaultTreeStoreProbe,
    GroupServiceProbe,
    MembershipServiceProbe,
    PermissionProbe,
    TreeStoreProbe,
)
from groups.application.services import (
    AggregationEngine,
    GroupService,
    MembershipIndex,
    MembershipService,
    PermissionEvaluator,
    TreeStore,
)
from groups.application.value_objects import CurrentUser
from groups.domain.value_objects import ContactId
from groups.infrastructure.clock import SystemClock
from groups.infrastructure.google_place_client import GooglePlaceClient
from groups.infrastructure.group_repository import GroupRepository
from groups.infrastructure.membership_repository import MembershipRepository
from groups.infrastructure.membership_request_repository import (
    MembershipRequestRepository,
)
from groups.infrastructure.sql_category_store import SqlCategoryStore
from groups.infrastructure.sql_event_store import SqlEventStore
from groups.ports.services import ICategoryStore, IEventStore, IPlaceService
from infrastructure.database.dependencies import (
    get_read_sessionmaker,
    get_write_session,
)
from infrastructure.settings import (
    GroupsSettings,
    get_groups_settings,
    get_places_settings,
)


def get_current_user(
    x_contact_id: Annotated[str | None, Header(alias="X-Contact-Id")] = None,
) -> CurrentUser:
    """Resolve the acting contact from the X-Contact-Id header.

    Authentication happens upstream (gateway or CRM session); this context
    trusts the forwarded contact id.

    Raises:
        HTTPException 401: If the header is missing or blank
    """
    if x_contact_id is None or not x_contact_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Contact-Id header",
        )
    return CurrentUser(contact_id=ContactId(value=x_contact_id.strip()))


def get_optional_user(
    x_contact_id: Annotated[str | None, Header(alias="X-Contact-Id")] = None,
) -> CurrentUser | None:
    """Resolve the acting contact if one was forwarded, else None."""
    if x_contact_id is None or not x_contact_id.strip():
        return None
    return CurrentUser(contact_id=ContactId(value=x_contact_id.strip()))


def get_tree_store_probe() -> TreeStoreProbe:
    """Get TreeStoreProbe instance."""
    return DefaultTreeStoreProbe()


def get_permission_probe() -> PermissionProbe:
    """Get PermissionProbe instance."""
    return DefaultPermissionProbe()


def get_aggregation_probe() -> AggregationProbe:
    """Get AggregationProbe instance."""
    return DefaultAggregationProbe()


def get_group_service_probe() -> GroupServiceProbe:
    """Get GroupServiceProbe instance.

    Returns:
        DefaultGroupServiceProbe instance for observability
    """
    return DefaultGroupServiceProbe()


def get_membership_service_probe() -> MembershipServiceProbe:
    """Get MembershipServiceProbe instance."""
    return DefaultMembershipServiceProbe()


def get_group_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> GroupRepository:
    """Get GroupRepository instance.

    Args:
        session: Async database session

    Returns:
        GroupRepository bound to the request session
    """
    return GroupRepository(session=session)


def get_membership_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> MembershipRepository:
    """Get MembershipRepository instance."""
    return MembershipRepository(session=session)


def get_membership_request_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> MembershipRequestRepository:
    """Get MembershipRequestRepository instance."""
    return MembershipRequestRepository(session=session)


def get_tree_store(
    group_repo: Annotated[GroupRepository, Depends(get_group_repository)],
    probe: Annotated[TreeStoreProbe, Depends(get_tree_store_probe)],
) -> TreeStore:
    """Get TreeStore instance."""
    return TreeStore(group_repository=group_repo, probe=probe)


def get_membership_index(
    membership_repo: Annotated[MembershipRepository, Depends(get_membership_repository)],
) -> MembershipIndex:
    """Get MembershipIndex instance."""
    return MembershipIndex(membership_repository=membership_repo)


def get_permission_evaluator(
    tree_store: Annotated[TreeStore, Depends(get_tree_store)],
    membership_index: Annotated[MembershipIndex, Depends(get_membership_index)],
    probe: Annotated[PermissionProbe, Depends(get_permission_probe)],
) -> PermissionEvaluator:
    """Get PermissionEvaluator instance."""
    return PermissionEvaluator(
        tree_store=tree_store, membership_index=membership_index, probe=probe
    )


def get_event_store(
    settings: Annotated[GroupsSettings, Depends(get_groups_settings)],
) -> IEventStore:
    """Get the event store adapter (own read sessions, bounded by a timeout)."""
    return SqlEventStore(
        session_factory=get_read_sessionmaker(),
        timeout_seconds=settings.external_timeout_seconds,
    )


def get_category_store(
    settings: Annotated[GroupsSettings, Depends(get_groups_settings)],
) -> ICategoryStore:
    """Get the category store adapter."""
    return SqlCategoryStore(
        session_factory=get_read_sessionmaker(),
        timeout_seconds=settings.external_timeout_seconds,
    )


def get_place_service(
    settings: Annotated[GroupsSettings, Depends(get_groups_settings)],
) -> IPlaceService | None:
    """Get the place client, or None when place lookups are disabled."""
    places = get_places_settings()
    if not places.enabled:
        return None
    return GooglePlaceClient(
        api_key=places.api_key.get_secret_value(),
        base_url=places.base_url,
        timeout_seconds=settings.external_timeout_seconds,
    )


def get_aggregation_engine(
    tree_store: Annotated[TreeStore, Depends(get_tree_store)],
    membership_index: Annotated[MembershipIndex, Depends(get_membership_index)],
    event_store: Annotated[IEventStore, Depends(get_event_store)],
    settings: Annotated[GroupsSettings, Depends(get_groups_settings)],
    probe: Annotated[AggregationProbe, Depends(get_aggregation_probe)],
) -> AggregationEngine:
    """Get AggregationEngine instance."""
    return AggregationEngine(
        tree_store=tree_store,
        membership_index=membership_index,
        event_store=event_store,
        retry_attempts=settings.external_retry_attempts,
        backoff_seconds=settings.external_backoff_seconds,
        probe=probe,
    )


def get_group_service(
    session: Annotated[AsyncSession, Depends(get_write_session)],
    group_repo: Annotated[GroupRepository, Depends(get_group_repository)],
    request_repo: Annotated[
        MembershipRequestRepository, Depends(get_membership_request_repository)
    ],
    tree_store: Annotated[TreeStore, Depends(get_tree_store)],
    membership_index: Annotated[MembershipIndex, Depends(get_membership_index)],
    permissions: Annotated[PermissionEvaluator, Depends(get_permission_evaluator)],
    aggregation: Annotated[AggregationEngine, Depends(get_aggregation_engine)],
    category_store: Annotated[ICategoryStore, Depends(get_category_store)],
    place_service: Annotated[IPlaceService | None, Depends(get_place_service)],
    settings: Annotated[GroupsSettings, Depends(get_groups_settings)],
    probe: Annotated[GroupServiceProbe, Depends(get_group_service_probe)],
) -> GroupService:
    """Get GroupService instance.

    Repositories share the request session through FastAPI dependency
    caching, so every component sees the service's transaction.

    Returns:
        GroupService instance
    """
    return GroupService(
        session=session,
        group_repository=group_repo,
        request_repository=request_repo,
        tree_store=tree_store,
        membership_index=membership_index,
        permissions=permissions,
        aggregation=aggregation,
        category_store=category_store,
        clock=SystemClock(),
        place_service=place_service,
        settings=settings,
        probe=probe,
    )


def get_membership_service(
    session: Annotated[AsyncSession, Depends(get_write_session)],
    tree_store: Annotated[TreeStore, Depends(get_tree_store)],
    membership_index: Annotated[MembershipIndex, Depends(get_membership_index)],
    permissions: Annotated[PermissionEvaluator, Depends(get_permission_evaluator)],
    request_repo: Annotated[
        MembershipRequestRepository, Depends(get_membership_request_repository)
    ],
    probe: Annotated[MembershipServiceProbe, Depends(get_membership_service_probe)],
) -> MembershipService:
    """Get MembershipService instance."""
    return MembershipService(
        session=session,
        tree_store=tree_store,
        membership_index=membership_index,
        permissions=permissions,
        request_repository=request_repo,
        probe=probe,
    )
