"""
Memberships module - Teacher, Student and SchoolStaff records per school.
"""

from app.modules.memberships.models import SchoolStaff, Student, Teacher
from app.modules.memberships.types import (
    JOINABLE_ROLES,
    SCHOOL_STAFF_ROLES,
    Membership,
    MembershipKind,
    MembershipProfile,
    StaffMembership,
    StudentMembership,
    TeacherMembership,
    UnknownRoleError,
    membership_for_role,
)

__all__ = [
    "Teacher",
    "Student",
    "SchoolStaff",
    "SCHOOL_STAFF_ROLES",
    "JOINABLE_ROLES",
    "Membership",
    "MembershipKind",
    "MembershipProfile",
    "TeacherMembership",
    "StudentMembership",
    "StaffMembership",
    "UnknownRoleError",
    "membership_for_role",
]
