"""
School Token Assembly

Builds the claims of a school-scoped session token from a membership row.
Used after join acceptance, after a direct code join, and at login when the
user already belongs to their current school.
"""

from typing import Any

from app.core.security import create_school_token
from app.modules.users.models import Gender

from .models import SchoolStaff, Student, Teacher
from .types import STUDENT_ROLE, TEACHER_ROLE, MembershipKind


def membership_role(kind: MembershipKind, record: Teacher | Student | SchoolStaff) -> str:
    """Return the role string a membership grants (staff rows carry their title)."""
    if kind == MembershipKind.TEACHER:
        return TEACHER_ROLE
    if kind == MembershipKind.STUDENT:
        return STUDENT_ROLE
    return record.role


def build_school_token_payload(
    kind: MembershipKind,
    record: Teacher | Student | SchoolStaff,
) -> dict[str, Any]:
    """
    Assemble token claims for a membership.

    ``sub`` is the membership id (not the user id). Students also carry
    their ``class_id``.

    Args:
        kind: Which membership table the record came from
        record: The Teacher, Student or SchoolStaff row

    Returns:
        Claims dict ready for signing
    """
    gender = record.gender.value if isinstance(record.gender, Gender) else record.gender

    payload: dict[str, Any] = {
        "sub": str(record.id),
        "user_id": str(record.user_id),
        "school_id": str(record.school_id),
        "name": record.name,
        "email": record.email,
        "phone": record.phone,
        "gender": gender,
        "image": record.image,
        "role": membership_role(kind, record),
    }

    if kind == MembershipKind.STUDENT:
        payload["class_id"] = str(record.class_id) if record.class_id else None

    return payload


def issue_school_token(kind: MembershipKind, record: Teacher | Student | SchoolStaff) -> str:
    """Build and sign a school token for a membership row."""
    return create_school_token(build_school_token_payload(kind, record))
