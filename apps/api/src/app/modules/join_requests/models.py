"""
Join Request Models

A join request asks for a user (or an invited contact) to be admitted to a
school in a given role. Requests are created by the candidate themselves
(``from_user=True``), by the direct join-by-code flow when the school
requires manual verification, or by school administration seeding
(``from_user=False``).
"""

import enum

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class JoinRequestStatus(str, enum.Enum):
    """Lifecycle status of a join request."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class JoinRequest(BaseModel):
    """
    Request to join a school in a role.

    Unique per (email, school_id). Status only ever moves from pending to
    accepted or rejected.
    """

    __tablename__ = "school_join_requests"

    school_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Set when the contact email belongs to a registered user
    user_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # STUDENT, TEACHER or a staff title
    role: Mapped[str] = mapped_column(String(50), nullable=False)

    # Contact
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Class placement applied on acceptance (students only)
    class_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classes.id", ondelete="SET NULL"),
        nullable=True,
    )

    from_user: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[JoinRequestStatus] = mapped_column(
        ENUM(
            JoinRequestStatus,
            name="join_request_status",
            create_type=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=JoinRequestStatus.PENDING,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("email", "school_id", name="uq_school_join_requests_email_school_id"),
        Index("ix_school_join_requests_school_id_status", "school_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<JoinRequest(id={self.id}, school_id={self.school_id}, "
            f"role={self.role}, status={self.status.value})>"
        )
