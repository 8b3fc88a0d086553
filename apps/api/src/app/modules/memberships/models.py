"""
Membership Models

Role-specific membership tables linking a user to a school. Each table is
unique on (user_id, school_id); the service layer additionally refuses a
second membership of a different kind for the same pair.
"""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel
from app.modules.users.models import Gender


class MembershipColumns:
    """Columns shared by every membership table."""

    school_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Profile snapshot taken when the membership was created
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    age: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    gender: Mapped[Gender | None] = mapped_column(
        ENUM(Gender, name="gender", create_type=False),
        nullable=True,
    )


class Teacher(MembershipColumns, BaseModel):
    """A user teaching at a school."""

    __tablename__ = "teachers"
    __table_args__ = (
        UniqueConstraint("user_id", "school_id", name="uq_teachers_user_id_school_id"),
    )

    def __repr__(self) -> str:
        return f"<Teacher(id={self.id}, user_id={self.user_id}, school_id={self.school_id})>"


class Student(MembershipColumns, BaseModel):
    """A user enrolled at a school, optionally placed in a class."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("user_id", "school_id", name="uq_students_user_id_school_id"),
    )

    class_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, user_id={self.user_id}, class_id={self.class_id})>"


class SchoolStaff(MembershipColumns, BaseModel):
    """A non-teaching staff member. ``role`` holds the staff title verbatim."""

    __tablename__ = "school_staffs"
    __table_args__ = (
        UniqueConstraint("user_id", "school_id", name="uq_school_staffs_user_id_school_id"),
    )

    role: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<SchoolStaff(id={self.id}, user_id={self.user_id}, role={self.role})>"
