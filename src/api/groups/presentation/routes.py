"""HTTP routes for the group hierarchy."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from groups.application.services import GroupService, MembershipService
from groups.application.value_objects import CurrentUser, GroupDetailView, ReadDepth
from groups.dependencies import (
    get_current_user,
    get_group_service,
    get_membership_service,
    get_optional_user,
)
from groups.domain.value_objects import (
    CategoryId,
    ContactId,
    GroupId,
    MembershipRequestId,
)
from groups.ports.exceptions import (
    ConflictRetryableError,
    CycleDetectedError,
    DuplicateMembershipError,
    DuplicateMembershipRequestError,
    ExternalServiceUnavailableError,
    ForbiddenError,
    GroupNotFoundError,
    InvalidParentError,
    MembershipNotFoundError,
    MembershipRequestNotFoundError,
    PlaceNotFoundError,
)
from groups.ports.types import GroupFilter, PageRequest
from groups.presentation.models import (
    AddGroupMemberRequest,
    CreateGroupRequest,
    GroupCountResponse,
    GroupDetailResponse,
    GroupExistsResponse,
    GroupMemberResponse,
    GroupResponse,
    GroupSearchResponse,
    MembershipRequestResponse,
    SubmitMembershipRequest,
    UpdateGroupMemberRoleRequest,
    UpdateGroupRequest,
)
from infrastructure.settings import GroupsSettings, get_groups_settings

router = APIRouter(
    prefix="/groups",
    tags=["groups"],
)

_NOT_FOUND = (GroupNotFoundError, MembershipNotFoundError, MembershipRequestNotFoundError)
_BAD_REQUEST = (InvalidParentError, PlaceNotFoundError, ValueError)
_CONFLICT = (
    CycleDetectedError,
    DuplicateMembershipError,
    DuplicateMembershipRequestError,
    ConflictRetryableError,
)


def _http_error(error: Exception, detail: str) -> HTTPException:
    """Map a service exception to an HTTP error.

    Unknown errors become a 500 with ``detail``; their message is not leaked.
    """
    if isinstance(error, _NOT_FOUND):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ForbiddenError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions to modify group",
        )
    if isinstance(error, _BAD_REQUEST):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, _CONFLICT):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, ExternalServiceUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{error.service} is temporarily unavailable",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


def _parse_group_id(group_id: str) -> GroupId:
    try:
        return GroupId.from_string(group_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid group ID format",
        )


def _parse_contact_id(contact_id: str) -> ContactId:
    try:
        return ContactId(value=contact_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid contact ID",
        )


def _parse_request_id(request_id: str) -> MembershipRequestId:
    try:
        return MembershipRequestId.from_string(request_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid membership request ID format",
        )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=GroupResponse,
    summary="Create group",
    description="Create a root group, or a child of a group the caller may modify.",
    responses={
        201: {"description": "Group created"},
        400: {"description": "Invalid attributes or unknown parent"},
        401: {"description": "X-Contact-Id header missing"},
        403: {"description": "Caller may not modify the parent"},
        500: {"description": "Internal server error"},
    },
)
async def create_group(
    request: CreateGroupRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[GroupService, Depends(get_group_service)],
) -> GroupResponse:
    """Create a group.

    Args:
        request: Group attributes, optional parent and optional place id
        current_user: Acting contact
        service: Group service

    Returns:
        GroupResponse with resolved category and parent names
    """
    try:
        group = await service.create(request.to_command(), current_user)
        view = await service.read(group.id, ReadDepth.SUMMARY, current_user)
        return GroupResponse.from_summary(view)
    except Exception as e:
        raise _http_error(e, "Failed to create group") from e


@router.get(
    "",
    response_model=GroupSearchResponse,
    summary="Search groups",
    description=(
        "Search by name substring and category. With X-Contact-Id, results are "
        "limited to the groups the caller belongs to or leads (with subtrees)."
    ),
)
async def search_groups(
    current_user: Annotated[CurrentUser | None, Depends(get_optional_user)],
    service: Annotated[GroupService, Depends(get_group_service)],
    settings: Annotated[GroupsSettings, Depends(get_groups_settings)],
    name: Annotated[str | None, Query(description="Name substring")] = None,
    category_id: Annotated[list[str] | None, Query()] = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> GroupSearchResponse:
    """Search groups, one page at a time."""
    try:
        criteria = GroupFilter(
            name_contains=name,
            category_ids=(
                frozenset(CategoryId(value=c) for c in category_id)
                if category_id
                else None
            ),
        )
        page = PageRequest(
            skip=skip, limit=limit if limit is not None else settings.search_default_limit
        )
        found = await service.search(criteria, page, current_user)
        return GroupSearchResponse(
            items=[GroupResponse.from_summary(view) for view in found.items],
            total=found.total,
            skip=found.skip,
            limit=found.limit,
        )
    except Exception as e:
        raise _http_error(e, "Failed to search groups") from e


@router.get("/exists", response_model=GroupExistsResponse)
async def group_name_exists(
    name: Annotated[str, Query(min_length=1)],
    service: Annotated[GroupService, Depends(get_group_service)],
) -> GroupExistsResponse:
    """Check whether a group with exactly this name exists."""
    try:
        return GroupExistsResponse(exists=await service.name_exists(name))
    except Exception as e:
        raise _http_error(e, "Failed to check group name") from e


@router.get("/count", response_model=GroupCountResponse)
async def count_groups(
    service: Annotated[GroupService, Depends(get_group_service)],
) -> GroupCountResponse:
    """Total number of groups."""
    try:
        return GroupCountResponse(count=await service.count())
    except Exception as e:
        raise _http_error(e, "Failed to count groups") from e


@router.get(
    "/{group_id}",
    response_model=GroupDetailResponse | GroupResponse,
    summary="Read group",
    description=(
        "depth=summary returns the flat record. depth=full adds ancestors, "
        "descendants, leaders, this month's attendance and reports, and "
        "whether the caller may edit the group."
    ),
    responses={
        400: {"description": "Invalid group ID"},
        404: {"description": "Group not found"},
        503: {"description": "Event or category store unavailable"},
    },
)
async def get_group(
    group_id: str,
    current_user: Annotated[CurrentUser | None, Depends(get_optional_user)],
    service: Annotated[GroupService, Depends(get_group_service)],
    depth: Annotated[ReadDepth, Query()] = ReadDepth.SUMMARY,
) -> GroupDetailResponse | GroupResponse:
    """Read a group at the requested depth."""
    group_id_obj = _parse_group_id(group_id)

    try:
        view = await service.read(group_id_obj, depth, current_user)
    except Exception as e:
        raise _http_error(e, "Failed to retrieve group") from e

    if isinstance(view, GroupDetailView):
        return GroupDetailResponse.from_detail(view)
    return GroupResponse.from_summary(view)


@router.patch(
    "/{group_id}",
    response_model=GroupResponse,
    summary="Update group",
    description=(
        "Update attributes and optionally move the group. Requires a Leader "
        "role on the group or one of its ancestors (and on the new parent)."
    ),
    responses={
        400: {"description": "Invalid group ID, attributes or parent"},
        403: {"description": "Caller may not modify the group or the new parent"},
        404: {"description": "Group not found"},
        409: {"description": "Move would create a cycle, or a conflicting write"},
    },
)
async def update_group(
    group_id: str,
    request: UpdateGroupRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[GroupService, Depends(get_group_service)],
) -> GroupResponse:
    """Update a group."""
    group_id_obj = _parse_group_id(group_id)

    try:
        await service.update(request.to_command(group_id_obj), current_user)
        view = await service.read(group_id_obj, ReadDepth.SUMMARY, current_user)
        return GroupResponse.from_summary(view)
    except Exception as e:
        raise _http_error(e, "Failed to update group") from e


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[GroupService, Depends(get_group_service)],
) -> None:
    """Delete a group. Its children move up to its parent.

    Raises:
        HTTPException: 400 if group ID is invalid
        HTTPException: 403 if the caller may not modify the group
        HTTPException: 404 if group not found
    """
    group_id_obj = _parse_group_id(group_id)

    try:
        await service.delete(group_id_obj, current_user)
    except Exception as e:
        raise _http_error(e, "Failed to delete group") from e


@router.get(
    "/{group_id}/members",
    response_model=list[GroupMemberResponse],
    summary="List group members",
)
async def list_group_members(
    group_id: str,
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> list[GroupMemberResponse]:
    """List the membership rows of exactly this group."""
    group_id_obj = _parse_group_id(group_id)

    try:
        members = await service.list_members(group_id_obj)
        return [GroupMemberResponse.from_domain(m) for m in members]
    except Exception as e:
        raise _http_error(e, "Failed to list group members") from e


@router.post(
    "/{group_id}/members",
    status_code=status.HTTP_201_CREATED,
    response_model=GroupMemberResponse,
    summary="Add member to group",
    responses={
        403: {"description": "Caller may not modify the group"},
        409: {"description": "Contact is already a member"},
    },
)
async def add_group_member(
    group_id: str,
    request: AddGroupMemberRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> GroupMemberResponse:
    """Add a contact to a group with a role."""
    group_id_obj = _parse_group_id(group_id)
    contact_id_obj = _parse_contact_id(request.contact_id)

    try:
        membership = await service.add_member(
            group_id_obj, contact_id_obj, request.role, current_user
        )
        return GroupMemberResponse.from_domain(membership)
    except Exception as e:
        raise _http_error(e, "Failed to add member to group") from e


@router.patch(
    "/{group_id}/members/{contact_id}",
    response_model=GroupMemberResponse,
    summary="Update group member role",
)
async def update_group_member_role(
    group_id: str,
    contact_id: str,
    request: UpdateGroupMemberRoleRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> GroupMemberResponse:
    """Change a member's role."""
    group_id_obj = _parse_group_id(group_id)
    contact_id_obj = _parse_contact_id(contact_id)

    try:
        membership = await service.change_role(
            group_id_obj, contact_id_obj, request.role, current_user
        )
        return GroupMemberResponse.from_domain(membership)
    except Exception as e:
        raise _http_error(e, "Failed to update member role") from e


@router.delete(
    "/{group_id}/members/{contact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove member from group",
)
async def remove_group_member(
    group_id: str,
    contact_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> None:
    """Remove a contact from a group."""
    group_id_obj = _parse_group_id(group_id)
    contact_id_obj = _parse_contact_id(contact_id)

    try:
        await service.remove_member(group_id_obj, contact_id_obj, current_user)
    except Exception as e:
        raise _http_error(e, "Failed to remove member from group") from e


@router.post(
    "/{group_id}/membership-requests",
    status_code=status.HTTP_201_CREATED,
    response_model=MembershipRequestResponse,
    summary="Ask to join a group",
    responses={
        404: {"description": "Group not found"},
        409: {"description": "Already a member, or a request is already pending"},
    },
)
async def submit_membership_request(
    group_id: str,
    request: SubmitMembershipRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> MembershipRequestResponse:
    """Record the caller's request to join a group."""
    group_id_obj = _parse_group_id(group_id)

    try:
        submitted = await service.submit_request(
            request.to_command(group_id_obj, current_user.contact_id)
        )
        return MembershipRequestResponse.from_domain(submitted)
    except Exception as e:
        raise _http_error(e, "Failed to submit membership request") from e


@router.get(
    "/{group_id}/membership-requests",
    response_model=list[MembershipRequestResponse],
    summary="List pending membership requests",
)
async def list_membership_requests(
    group_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> list[MembershipRequestResponse]:
    """List a group's pending requests, oldest first."""
    group_id_obj = _parse_group_id(group_id)

    try:
        requests = await service.list_requests(group_id_obj, current_user)
        return [MembershipRequestResponse.from_domain(r) for r in requests]
    except Exception as e:
        raise _http_error(e, "Failed to list membership requests") from e


@router.post(
    "/membership-requests/{request_id}/approve",
    response_model=GroupMemberResponse,
    summary="Approve a membership request",
)
async def approve_membership_request(
    request_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> GroupMemberResponse:
    """Turn a pending request into a Member row."""
    request_id_obj = _parse_request_id(request_id)

    try:
        membership = await service.approve(request_id_obj, current_user)
        return GroupMemberResponse.from_domain(membership)
    except Exception as e:
        raise _http_error(e, "Failed to approve membership request") from e


@router.post(
    "/membership-requests/{request_id}/deny",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deny a membership request",
)
async def deny_membership_request(
    request_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[MembershipService, Depends(get_membership_service)],
) -> None:
    """Discard a pending request."""
    request_id_obj = _parse_request_id(request_id)

    try:
        await service.deny(request_id_obj, current_user)
    except Exception as e:
        raise _http_error(e, "Failed to deny membership request") from e
