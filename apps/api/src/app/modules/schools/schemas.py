"""
School Schemas

Pydantic schemas for school creation, academic setup and administration
seeding.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import BCRYPT_MAX_BYTES, fits_bcrypt
from app.modules.memberships.types import SCHOOL_STAFF_ROLES

MAX_COMBINATIONS = 6
MAX_SUBJECT_LENGTH = 100
PHONE_PATTERN = r"^\d{10,20}$"


class SchoolCreate(BaseModel):
    """Request body for POST /school. Join codes are sent in plain text and hashed."""

    name: str = Field(..., min_length=1, max_length=200)
    username: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, max_length=500)
    school_type: str | None = Field(None, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    address: dict | None = None
    image: str | None = Field(None, max_length=500)

    students_code: str | None = Field(None, min_length=4, max_length=BCRYPT_MAX_BYTES)
    teachers_code: str | None = Field(None, min_length=4, max_length=BCRYPT_MAX_BYTES)
    school_staffs_code: str | None = Field(None, min_length=4, max_length=BCRYPT_MAX_BYTES)
    required_verification_to_join_by_code: bool = False

    @field_validator("students_code", "teachers_code", "school_staffs_code")
    @classmethod
    def validate_code_bytes(cls, value: str | None) -> str | None:
        if value is not None and not fits_bcrypt(value):
            raise ValueError(f"join codes must be at most {BCRYPT_MAX_BYTES} bytes")
        return value


class SchoolResponse(BaseModel):
    """A school as returned by the API. Join code hashes are never included."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    name: str
    description: str | None = None
    school_type: str | None = None
    email: str | None = None
    phone: str | None = None
    address: dict | None = None
    image: str | None = None
    creator_id: UUID | None = None
    required_verification_to_join_by_code: bool
    academic_profile: dict | None = None
    total_classes: int
    total_modules: int
    created_at: datetime


def _clean_subjects(values: list[str]) -> list[str]:
    cleaned = [value.strip() for value in values]
    if any(not value for value in cleaned):
        raise ValueError("subject names must not be empty")
    if any(len(value) > MAX_SUBJECT_LENGTH for value in cleaned):
        raise ValueError(f"subject names must be at most {MAX_SUBJECT_LENGTH} characters")
    return cleaned


class SchoolAcademicCreate(BaseModel):
    """Request body for POST /school/academic."""

    school_id: UUID
    assessment_types: list[str] = Field(default_factory=list)

    primary_subjects_offered: list[str] = Field(default_factory=list)
    primary_pass_mark: int | None = Field(None, ge=0, le=100)

    o_level_core_subjects: list[str] = Field(default_factory=list)
    o_level_option_subjects: list[str] = Field(default_factory=list)
    o_level_examination_types: list[str] = Field(default_factory=list)
    o_level_assessment: list[str] = Field(default_factory=list)

    a_level_subject_combination: list[str] = Field(default_factory=list, max_length=MAX_COMBINATIONS)
    a_level_option_subjects: list[str] = Field(default_factory=list)
    a_level_pass_mark: int | None = Field(None, ge=0, le=100)

    tvet_specialization: list[str] = Field(default_factory=list, max_length=MAX_COMBINATIONS)
    tvet_option_subjects: list[str] = Field(default_factory=list)

    @field_validator(
        "primary_subjects_offered",
        "o_level_core_subjects",
        "o_level_option_subjects",
        "a_level_subject_combination",
        "a_level_option_subjects",
        "tvet_specialization",
        "tvet_option_subjects",
    )
    @classmethod
    def validate_subjects(cls, values: list[str]) -> list[str]:
        return _clean_subjects(values)


class AcademicSetupResponse(BaseModel):
    """Counts of rows created by the academic structure generator."""

    total_classes: int
    total_module: int


class AdministrationContact(BaseModel):
    role: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str) -> str:
        if value not in SCHOOL_STAFF_ROLES:
            raise ValueError(f"role must be one of: {', '.join(SCHOOL_STAFF_ROLES)}")
        return value


class SchoolAdministrationCreate(BaseModel):
    """Request body for POST /school/administration."""

    school_id: UUID
    headmaster_name: str = Field(..., min_length=2, max_length=200)
    headmaster_email: EmailStr
    headmaster_phone: str = Field(..., pattern=PHONE_PATTERN)

    director_of_studies: str = Field(..., min_length=2, max_length=200)
    principal_email: EmailStr
    principal_phone: str = Field(..., pattern=PHONE_PATTERN)

    additional_administration: list[AdministrationContact] = Field(default_factory=list)


class AdministrationJoinRequestsResponse(BaseModel):
    """Outcome of seeding administration join requests."""

    attempted: int
    created: int
    message: str
