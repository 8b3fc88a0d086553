"""
School Models

Database models for school (tenant) management.
Each school is a tenant in the multi-tenant architecture.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class School(BaseModel):
    """
    School tenant model.

    The three ``*_code`` columns hold bcrypt hashes of the per-role join
    codes. They are never returned by read endpoints. When
    ``required_verification_to_join_by_code`` is set, a valid student or
    teacher code only produces a pending join request instead of an
    immediate membership.
    """

    __tablename__ = "schools"

    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    school_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    # Contact information
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    address: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    image: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # ON DELETE SET NULL: the school outlives its creator's account
    creator_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Hashed join codes
    students_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    teachers_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    school_staffs_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    required_verification_to_join_by_code: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Academic structure (written by the provisioning routine)
    academic_profile: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    total_classes: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    total_modules: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<School(id={self.id}, username={self.username}, name={self.name})>"
