"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import BCRYPT_MAX_BYTES, fits_bcrypt
from app.modules.users.models import Gender, UserRole

# Roles a user may pick at sign-up; ADMIN is provisioned out of band
SELF_SERVICE_ROLES = (UserRole.STUDENT, UserRole.TEACHER, UserRole.SCHOOLSTAFF)


class RegisterRequest(BaseModel):
    """Sign-up request schema."""

    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=BCRYPT_MAX_BYTES)
    role: UserRole | None = None
    phone: str | None = Field(None, max_length=20)
    gender: Gender | None = None

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, value: str) -> str:
        if not fits_bcrypt(value):
            raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")
        return value


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str
    name: str
    role: UserRole | None = None
    current_school_id: UUID | None = None
    phone: str | None = None
    gender: Gender | None = None
    image: str | None = None
    created_at: datetime


class LoginResponse(BaseModel):
    """Login response schema. ``school_token`` is set when the user belongs to a current school."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    school_token: str | None = None
    user: UserResponse
