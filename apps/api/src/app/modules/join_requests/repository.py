"""
Join Request Repository

Database operations for school join requests. Writes flush only; services
commit or wrap several calls in a transaction.

Design Principles:
- All queries are parameterized
- No business rules beyond the status state machine
- Emails are stored lowercase and matched case-insensitively
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import JoinRequest, JoinRequestStatus


async def create(
    db: AsyncSession,
    *,
    school_id: str,
    role: str,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    user_id: str | None = None,
    class_id: str | None = None,
    from_user: bool = True,
) -> JoinRequest:
    """Create a new pending join request."""

    join_request = JoinRequest(
        school_id=school_id,
        role=role,
        name=name,
        email=email.lower() if email else email,
        phone=phone,
        user_id=user_id,
        class_id=class_id,
        from_user=from_user,
        status=JoinRequestStatus.PENDING,
    )

    db.add(join_request)
    await db.flush()
    await db.refresh(join_request)

    return join_request


async def get_by_id(db: AsyncSession, id: str | UUID) -> JoinRequest | None:
    """Get join request by ID."""
    result = await db.execute(select(JoinRequest).where(JoinRequest.id == str(id)))
    return result.scalar_one_or_none()


async def get_by_email_and_school(
    db: AsyncSession,
    email: str,
    school_id: str | UUID,
) -> JoinRequest | None:
    """Get the join request for an (email, school) pair, if any."""
    result = await db.execute(
        select(JoinRequest).where(
            func.lower(JoinRequest.email) == email.lower(),
            JoinRequest.school_id == str(school_id),
        )
    )
    return result.scalar_one_or_none()


async def get_filtered(
    db: AsyncSession,
    *,
    school_id: str | UUID | None = None,
    user_id: str | UUID | None = None,
    email: str | None = None,
    status: JoinRequestStatus | None = None,
) -> list[JoinRequest]:
    """
    List join requests matching every provided filter, newest first.

    Filters left as None are ignored.
    """
    query = select(JoinRequest)

    if school_id is not None:
        query = query.where(JoinRequest.school_id == str(school_id))
    if user_id is not None:
        query = query.where(JoinRequest.user_id == str(user_id))
    if email is not None:
        query = query.where(func.lower(JoinRequest.email) == email.lower())
    if status is not None:
        query = query.where(JoinRequest.status == status)

    result = await db.execute(query.order_by(JoinRequest.created_at.desc()))
    return list(result.scalars().all())


async def delete(db: AsyncSession, join_request: JoinRequest) -> None:
    """Delete a join request."""
    await db.delete(join_request)
    await db.flush()


async def update_fields(db: AsyncSession, join_request: JoinRequest, **fields) -> JoinRequest:
    """
    Patch editable fields of a join request.

    Keys outside role/name/email/phone are ignored so status, user and
    school can never be changed here.
    """
    for key in ("role", "name", "email", "phone"):
        if key in fields:
            value = fields[key]
            if key == "email" and value:
                value = value.lower()
            setattr(join_request, key, value)

    await db.flush()
    await db.refresh(join_request)
    return join_request


# ============================================
# Status State Machine
# ============================================

VALID_STATUS_TRANSITIONS: dict[JoinRequestStatus, set[JoinRequestStatus]] = {
    JoinRequestStatus.PENDING: {
        JoinRequestStatus.ACCEPTED,
        JoinRequestStatus.REJECTED,
    },
    # Terminal states
    JoinRequestStatus.ACCEPTED: set(),
    JoinRequestStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: JoinRequestStatus,
        new_status: JoinRequestStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


async def update_status(
    db: AsyncSession,
    join_request: JoinRequest,
    status: JoinRequestStatus,
) -> JoinRequest:
    """
    Move a join request to a new status.

    Args:
        db: Database session
        join_request: The request to update
        status: New status

    Returns:
        Updated JoinRequest

    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    current_status = join_request.status
    if status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, status)

    join_request.status = status
    await db.flush()
    await db.refresh(join_request)

    return join_request
