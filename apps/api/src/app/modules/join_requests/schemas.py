"""
Join Request Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.modules.join_requests.models import JoinRequestStatus
from app.modules.memberships.types import (
    JOINABLE_ROLES,
    SCHOOL_STAFF_ROLES,
    MembershipKind,
    is_joinable_role,
)


def _validate_role(value: str) -> str:
    if not is_joinable_role(value):
        raise ValueError(f"role must be one of: {', '.join(JOINABLE_ROLES)}")
    return value


def _normalize_email(value: str | None) -> str | None:
    return value.strip().lower() if value else value


class JoinRequestCreate(BaseModel):
    """Request body for POST /school-join-requests."""

    school_id: UUID
    role: str = Field(..., min_length=1, max_length=50)
    name: str | None = Field(None, max_length=200)
    user_id: UUID | None = None
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    class_id: UUID | None = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str) -> str:
        return _validate_role(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return _normalize_email(value)


class JoinRequestUpdate(BaseModel):
    """
    Request body for PATCH /school-join-requests/{id}.

    Only contact and role fields are editable; status, user and school
    never change through this endpoint.
    """

    role: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        return _validate_role(value) if value is not None else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return _normalize_email(value)


class JoinRequestFilter(BaseModel):
    """Optional filters for listing join requests."""

    school_id: UUID | None = None
    user_id: UUID | None = None
    email: str | None = None
    status: JoinRequestStatus | None = None


class JoinRequestResponse(BaseModel):
    """A join request as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    school_id: UUID
    user_id: UUID | None = None
    role: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    class_id: UUID | None = None
    from_user: bool
    status: JoinRequestStatus
    created_at: datetime
    updated_at: datetime


class JoinByCodeRequest(BaseModel):
    """Request body for POST /school-join-requests/join."""

    username: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=100)
    # Required when the caller is school staff
    staff_role: str | None = Field(None, max_length=50)

    @field_validator("staff_role")
    @classmethod
    def validate_staff_role(cls, value: str | None) -> str | None:
        if value is not None and value not in SCHOOL_STAFF_ROLES:
            raise ValueError(f"staff_role must be one of: {', '.join(SCHOOL_STAFF_ROLES)}")
        return value


class MembershipResponse(BaseModel):
    """A membership row created by a join."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: MembershipKind
    school_id: UUID
    user_id: UUID
    name: str
    email: str
    role: str
    class_id: UUID | None = None


class AcceptJoinRequestResponse(BaseModel):
    """Response for PATCH /school-join-requests/{id}/accept."""

    token: str
    accepted_request: JoinRequestResponse


class JoinByCodeResponse(BaseModel):
    """
    Response for POST /school-join-requests/join.

    ``joined`` carries a token and the new membership. ``pending`` carries
    the join request awaiting acceptance.
    """

    status: str
    message: str
    token: str | None = None
    membership: MembershipResponse | None = None
    join_request: JoinRequestResponse | None = None
