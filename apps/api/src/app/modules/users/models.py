"""
User Models

Database models for user identity and authentication.
"""

from enum import Enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class UserRole(str, Enum):
    """Platform-level user roles."""

    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"
    SCHOOLSTAFF = "SCHOOLSTAFF"


class Gender(str, Enum):
    """Gender options for user profiles."""

    FEMALE = "FEMALE"
    MALE = "MALE"
    OTHER = "OTHER"


class User(BaseModel):
    """
    User model for authentication and identity.

    Role-specific data lives in the membership tables (Teacher, Student,
    SchoolStaff). ``current_school_id`` points at the school the user most
    recently joined and is set when a join completes.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    role: Mapped[UserRole | None] = mapped_column(
        ENUM(UserRole, name="user_role", create_type=True),
        nullable=True,
    )

    # ON DELETE SET NULL: deleting a school leaves the user without a current school
    current_school_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("schools.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        index=True,
    )

    # Profile fields
    gender: Mapped[Gender | None] = mapped_column(
        ENUM(Gender, name="gender", create_type=True),
        nullable=True,
    )
    # {"year": int, "month": int, "day": int}
    age: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    address: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    image: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        role = self.role.value if self.role else None
        return f"<User(id={self.id}, email={self.email}, role={role})>"
