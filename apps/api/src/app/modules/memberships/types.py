"""
Membership Domain Types

A membership is one of three variants (teacher, student, staff) sharing a
common profile. Join flows classify a role string into a variant once and
everything downstream (persistence, token claims) dispatches on the variant
instead of re-inspecting the role.
"""

from dataclasses import dataclass
from enum import Enum

# Staff titles accepted on join requests and stored verbatim on SchoolStaff
SCHOOL_STAFF_ROLES: tuple[str, ...] = (
    "Headmaster",
    "HeadTeacher",
    "DeputyHeadTeacher",
    "DirectorOfStudies",
    "HeadOfDepartment",
    "Librarian",
    "SchoolSecretary",
    "Accountant",
    "SchoolCounselor",
    "Janitor",
    "SecurityGuard",
    "Cook",
    "Nurse",
    "LabTechnician",
)

STUDENT_ROLE = "STUDENT"
TEACHER_ROLE = "TEACHER"

JOINABLE_ROLES: tuple[str, ...] = (STUDENT_ROLE, TEACHER_ROLE, *SCHOOL_STAFF_ROLES)


class MembershipKind(str, Enum):
    """Tag identifying which membership table a variant maps to."""

    TEACHER = "teacher"
    STUDENT = "student"
    STAFF = "staff"


class UnknownRoleError(ValueError):
    """Raised when a role string matches no membership variant."""

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Unknown role: {role}")


@dataclass(frozen=True)
class MembershipProfile:
    """Profile fields copied from the user onto any membership record."""

    school_id: str
    user_id: str
    email: str
    name: str
    phone: str | None = None
    image: str | None = None
    age: dict | None = None
    gender: str | None = None


@dataclass(frozen=True)
class TeacherMembership:
    profile: MembershipProfile
    kind: MembershipKind = MembershipKind.TEACHER

    @property
    def role(self) -> str:
        return TEACHER_ROLE


@dataclass(frozen=True)
class StudentMembership:
    profile: MembershipProfile
    class_id: str | None = None
    kind: MembershipKind = MembershipKind.STUDENT

    @property
    def role(self) -> str:
        return STUDENT_ROLE


@dataclass(frozen=True)
class StaffMembership:
    profile: MembershipProfile
    staff_role: str = ""
    kind: MembershipKind = MembershipKind.STAFF

    @property
    def role(self) -> str:
        return self.staff_role


Membership = TeacherMembership | StudentMembership | StaffMembership


def is_joinable_role(role: str) -> bool:
    """Check whether a role string can be used on a join request."""
    return role in JOINABLE_ROLES


def membership_for_role(
    role: str,
    profile: MembershipProfile,
    class_id: str | None = None,
) -> Membership:
    """
    Classify a role string into a membership variant.

    Args:
        role: STUDENT, TEACHER or a staff title
        profile: Shared profile fields
        class_id: Class placement, only kept for students

    Returns:
        The matching membership variant

    Raises:
        UnknownRoleError: If the role is not recognised
    """
    if role == TEACHER_ROLE:
        return TeacherMembership(profile=profile)
    if role == STUDENT_ROLE:
        return StudentMembership(profile=profile, class_id=class_id)
    if role in SCHOOL_STAFF_ROLES:
        return StaffMembership(profile=profile, staff_role=role)
    raise UnknownRoleError(role)
