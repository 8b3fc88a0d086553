"""
School Join Requests Router

API endpoints for the school join workflow.

Endpoints:
- POST /school-join-requests - Create a join request
- GET /school-join-requests - List join requests (filters: school_id, user_id, email, status)
- GET /school-join-requests/by-school/{school_id} - Requests for a school
- GET /school-join-requests/by-user/{user_id} - Requests for a user
- GET /school-join-requests/by-email/{email} - Requests for an email
- POST /school-join-requests/join - Join a school by username and code (authenticated)
- GET /school-join-requests/{id} - Get one request
- PATCH /school-join-requests/{id} - Edit role/contact fields
- PATCH /school-join-requests/{id}/accept - Accept a request (authenticated)
- PATCH /school-join-requests/{id}/reject - Reject a request
- DELETE /school-join-requests/{id} - Delete a request

Security:
- Join-by-code attempts are rate limited per user to slow code guessing
- Acceptance requires the caller's email to match the request
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import RateLimitExceeded, check_rate_limit
from app.modules.join_requests import service
from app.modules.join_requests.models import JoinRequestStatus
from app.modules.join_requests.schemas import (
    AcceptJoinRequestResponse,
    JoinByCodeRequest,
    JoinByCodeResponse,
    JoinRequestCreate,
    JoinRequestFilter,
    JoinRequestResponse,
    JoinRequestUpdate,
)
from app.modules.shared import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()


def _handle_service_error(e: ServiceError) -> HTTPException:
    """Convert service errors to HTTPExceptions."""
    return to_http_exception(e)


async def _check_join_rate_limit(user: CurrentUser) -> None:
    """
    Limit join-by-code attempts per user.

    Raises:
        RateLimitExceeded: If the user exceeded the configured attempts
    """
    limit = settings.join_code_rate_limit
    window_seconds = settings.join_code_rate_window_seconds
    allowed = await check_rate_limit(f"join_code:{user.id}", limit, window_seconds)

    if not allowed:
        logger.warning(f"Join-by-code rate limit exceeded for user {user.id}")
        raise RateLimitExceeded(limit, window_seconds)


def _to_responses(join_requests) -> list[JoinRequestResponse]:
    return [JoinRequestResponse.model_validate(item) for item in join_requests]


@router.post(
    "",
    response_model=JoinRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Join Request",
)
async def create_join_request(
    data: JoinRequestCreate,
    db: AsyncSession = Depends(get_db),
) -> JoinRequestResponse:
    """
    Create a pending join request.

    A pending request the same person submitted earlier for the same school
    is replaced by this one.
    """
    try:
        join_request = await service.create_join_request(db, data)
        return JoinRequestResponse.model_validate(join_request)
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.get("", response_model=list[JoinRequestResponse], summary="List Join Requests")
async def list_join_requests(
    school_id: UUID | None = Query(None),
    user_id: UUID | None = Query(None),
    email: str | None = Query(None),
    status_filter: JoinRequestStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> list[JoinRequestResponse]:
    """List join requests matching all provided filters."""
    filters = JoinRequestFilter(
        school_id=school_id,
        user_id=user_id,
        email=email,
        status=status_filter,
    )
    return _to_responses(await service.find_all(db, filters))


@router.get(
    "/by-school/{school_id}",
    response_model=list[JoinRequestResponse],
    summary="List Join Requests for a School",
)
async def list_by_school(
    school_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[JoinRequestResponse]:
    try:
        return _to_responses(await service.find_by_school_id(db, school_id))
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.get(
    "/by-user/{user_id}",
    response_model=list[JoinRequestResponse],
    summary="List Join Requests for a User",
)
async def list_by_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[JoinRequestResponse]:
    try:
        return _to_responses(await service.find_by_user_id(db, user_id))
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.get(
    "/by-email/{email}",
    response_model=list[JoinRequestResponse],
    summary="List Join Requests for an Email",
)
async def list_by_email(
    email: str,
    db: AsyncSession = Depends(get_db),
) -> list[JoinRequestResponse]:
    return _to_responses(await service.find_by_email(db, email))


@router.post(
    "/join",
    response_model=JoinByCodeResponse,
    summary="Join a School by Code",
    responses={
        400: {"description": "Invalid code, missing school code or invalid role"},
        404: {"description": "School or user not found"},
        429: {"description": "Too many join attempts"},
    },
)
async def join_school_by_code(
    data: JoinByCodeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JoinByCodeResponse:
    """
    Join a school using its username and the join code for the caller's role.

    Returns a school token when the join completes immediately, or the
    pending join request when the school has to approve it.
    """
    await _check_join_rate_limit(current_user)

    try:
        return await service.join_school_by_code_and_username(db, current_user, data)
    except ServiceError as e:
        logger.info(f"Join by code failed for user {current_user.id}: {e.error_code}")
        raise _handle_service_error(e) from e


@router.get("/{request_id}", response_model=JoinRequestResponse, summary="Get Join Request")
async def get_join_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
) -> JoinRequestResponse:
    try:
        return JoinRequestResponse.model_validate(await service.find_one(db, request_id))
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.patch("/{request_id}", response_model=JoinRequestResponse, summary="Edit Join Request")
async def update_join_request(
    request_id: str,
    data: JoinRequestUpdate,
    db: AsyncSession = Depends(get_db),
) -> JoinRequestResponse:
    """Edit the role or contact fields of a join request."""
    try:
        join_request = await service.update_join_request(db, request_id, data)
        return JoinRequestResponse.model_validate(join_request)
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.patch(
    "/{request_id}/accept",
    response_model=AcceptJoinRequestResponse,
    summary="Accept Join Request",
    responses={
        400: {"description": "Request not pending, not yours, or user already in school"},
        401: {"description": "Not authenticated"},
        404: {"description": "Join request not found"},
    },
)
async def accept_join_request(
    request_id: str,
    current_user: CurrentUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> AcceptJoinRequestResponse:
    """
    Accept a join request addressed to the caller.

    Creates the membership, marks the request accepted and returns a
    school-scoped token.
    """
    try:
        return await service.accept_request(db, request_id, current_user)
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.patch(
    "/{request_id}/reject",
    response_model=JoinRequestResponse,
    summary="Reject Join Request",
)
async def reject_join_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
) -> JoinRequestResponse:
    try:
        return JoinRequestResponse.model_validate(await service.reject_request(db, request_id))
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.delete("/{request_id}", response_model=JoinRequestResponse, summary="Delete Join Request")
async def delete_join_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
) -> JoinRequestResponse:
    try:
        return JoinRequestResponse.model_validate(await service.remove_join_request(db, request_id))
    except ServiceError as e:
        raise _handle_service_error(e) from e
