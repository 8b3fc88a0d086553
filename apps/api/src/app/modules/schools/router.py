"""
Schools Router

API endpoints for the school registry and academic setup.

Endpoints:
- POST /school - Create a school (authenticated, SCHOOLSTAFF or ADMIN)
- GET /school/by-username/{username} - Get a school by username
- GET /school/{id} - Get a school by ID
- POST /school/academic - Generate classes and modules for a school
- POST /school/administration - Seed administration join requests
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.core.database import get_db
from app.modules.schools import service
from app.modules.schools.schemas import (
    AcademicSetupResponse,
    AdministrationJoinRequestsResponse,
    SchoolAcademicCreate,
    SchoolAdministrationCreate,
    SchoolCreate,
    SchoolResponse,
)
from app.modules.shared import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()


def _handle_service_error(e: ServiceError) -> HTTPException:
    """Convert service errors to HTTPExceptions."""
    return to_http_exception(e)


@router.post(
    "",
    response_model=SchoolResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create School",
    responses={
        400: {"description": "Caller may not create schools or a unique field collides"},
        401: {"description": "Not authenticated"},
    },
)
async def create_school(
    data: SchoolCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SchoolResponse:
    """
    Create a school owned by the caller.

    Join codes are hashed before storage and never returned.
    """
    try:
        school = await service.create_school(db, current_user, data)
        return SchoolResponse.model_validate(school)
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.get(
    "/by-username/{username}",
    response_model=SchoolResponse,
    summary="Get School by Username",
)
async def get_school_by_username(
    username: str,
    db: AsyncSession = Depends(get_db),
) -> SchoolResponse:
    try:
        return SchoolResponse.model_validate(await service.get_school_by_username(db, username))
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.post(
    "/academic",
    response_model=AcademicSetupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Set Up Academic Structure",
    responses={
        400: {"description": "Invalid configuration or provisioning failed"},
        404: {"description": "School not found"},
    },
)
async def setup_academic_structure(
    data: SchoolAcademicCreate,
    db: AsyncSession = Depends(get_db),
) -> AcademicSetupResponse:
    """
    Generate the classes and modules for a school's curriculum.

    Every call creates a new set of classes and modules for the current
    academic year.
    """
    try:
        return await service.setup_academic_structure(db, data)
    except ServiceError as e:
        logger.error(f"Academic setup failed for school {data.school_id}: {e.message}")
        raise _handle_service_error(e) from e


@router.post(
    "/administration",
    response_model=AdministrationJoinRequestsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite School Administration",
)
async def send_administration_join_requests(
    data: SchoolAdministrationCreate,
    db: AsyncSession = Depends(get_db),
) -> AdministrationJoinRequestsResponse:
    """Create pending staff join requests for the school's administration contacts."""
    try:
        return await service.send_administration_join_requests(db, data)
    except ServiceError as e:
        raise _handle_service_error(e) from e


@router.get("/{school_id}", response_model=SchoolResponse, summary="Get School")
async def get_school(
    school_id: str,
    db: AsyncSession = Depends(get_db),
) -> SchoolResponse:
    try:
        return SchoolResponse.model_validate(await service.get_school(db, school_id))
    except ServiceError as e:
        raise _handle_service_error(e) from e
