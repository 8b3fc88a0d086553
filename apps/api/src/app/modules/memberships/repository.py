"""
Membership Repository

Persistence for the Teacher, Student and SchoolStaff tables. All writes
flush only; the join flows wrap them in a transaction together with the
join-request and user updates.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SchoolStaff, Student, Teacher
from .types import Membership, MembershipKind, StaffMembership, StudentMembership

logger = logging.getLogger(__name__)

MembershipRecord = Teacher | Student | SchoolStaff

MODEL_FOR_KIND: dict[MembershipKind, type[MembershipRecord]] = {
    MembershipKind.TEACHER: Teacher,
    MembershipKind.STUDENT: Student,
    MembershipKind.STAFF: SchoolStaff,
}


async def create_membership(db: AsyncSession, membership: Membership) -> MembershipRecord:
    """
    Persist a membership variant into its table.

    Args:
        db: Database session
        membership: Teacher, student or staff variant

    Returns:
        The created Teacher, Student or SchoolStaff row

    Raises:
        IntegrityError: If the (user_id, school_id) pair already exists in that table
    """
    profile = membership.profile
    fields = {
        "school_id": profile.school_id,
        "user_id": profile.user_id,
        "email": profile.email,
        "name": profile.name,
        "phone": profile.phone,
        "image": profile.image,
        "age": profile.age,
        "gender": profile.gender,
    }

    if isinstance(membership, StudentMembership):
        fields["class_id"] = membership.class_id
    elif isinstance(membership, StaffMembership):
        fields["role"] = membership.staff_role

    record = MODEL_FOR_KIND[membership.kind](**fields)
    db.add(record)
    await db.flush()

    logger.info(
        f"Created {membership.kind.value} membership {record.id} "
        f"for user {profile.user_id} in school {profile.school_id}"
    )
    return record


async def find_membership(
    db: AsyncSession,
    user_id: str,
    school_id: str,
) -> tuple[MembershipKind, MembershipRecord] | None:
    """
    Look for any membership of a user in a school across all three tables.

    Returns:
        (kind, record) for the first match, or None
    """
    for kind, model in MODEL_FOR_KIND.items():
        result = await db.execute(
            select(model).where(model.user_id == user_id, model.school_id == school_id)
        )
        record = result.scalar_one_or_none()
        if record is not None:
            return kind, record
    return None
