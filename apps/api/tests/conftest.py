"""
Shared fixtures for API unit tests.

Model fixtures are transient ORM instances (never attached to a session)
with ids and timestamps filled in, so response schemas can validate them.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.core.auth import CurrentUser
from app.core.security import hash_code
from app.modules.join_requests.models import JoinRequest, JoinRequestStatus
from app.modules.memberships.models import SchoolStaff, Student, Teacher
from app.modules.schools.models import School
from app.modules.users.models import Gender, User, UserRole

JOIN_CODES = {
    "student": "STU4RT26",
    "teacher": "TCH9KQ7M",
    "staff": "STF3XW8P",
}


def _stamp(instance):
    now = datetime.now(UTC)
    instance.id = str(uuid4())
    instance.created_at = now
    instance.updated_at = now
    return instance


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    return db


@pytest.fixture
def make_user():
    """Factory for users with a given platform role."""

    def _make(
        role: UserRole | None = UserRole.STUDENT,
        email: str = "amina@school.edu.sl",
        **fields,
    ):
        user = User(
            email=email,
            username="amina_4f9a2c",
            name=fields.pop("name", "Amina Kamara"),
            role=role,
            phone=fields.pop("phone", "0788000111"),
            gender=fields.pop("gender", Gender.FEMALE),
            image=None,
            age=None,
            current_school_id=None,
            password_hash=None,
            **fields,
        )
        return _stamp(user)

    return _make


@pytest.fixture(scope="session")
def join_codes():
    """Plaintext join codes per role."""
    return dict(JOIN_CODES)


@pytest.fixture(scope="session")
def join_code_hashes(join_codes):
    """bcrypt hashes of the join codes, computed once per session."""
    return {role: hash_code(code) for role, code in join_codes.items()}


@pytest.fixture
def school(join_code_hashes):
    """A school with student, teacher and staff codes and no verification requirement."""
    return _stamp(
        School(
            username="green_hill",
            name="Green Hill Academy",
            students_code=join_code_hashes["student"],
            teachers_code=join_code_hashes["teacher"],
            school_staffs_code=join_code_hashes["staff"],
            required_verification_to_join_by_code=False,
            total_classes=0,
            total_modules=0,
        )
    )


@pytest.fixture
def make_join_request():
    """Factory for join requests in any status."""

    def _make(school_id: str, role: str = "TEACHER", **fields):
        join_request = JoinRequest(
            school_id=school_id,
            role=role,
            name=fields.pop("name", "Amina Kamara"),
            email=fields.pop("email", "amina@school.edu.sl"),
            phone=fields.pop("phone", None),
            user_id=fields.pop("user_id", None),
            class_id=fields.pop("class_id", None),
            from_user=fields.pop("from_user", True),
            status=fields.pop("status", JoinRequestStatus.PENDING),
        )
        return _stamp(join_request)

    return _make


@pytest.fixture
def make_membership_record():
    """Factory for persisted-looking Teacher, Student and SchoolStaff rows."""
    models = {"teacher": Teacher, "student": Student, "staff": SchoolStaff}

    def _make(kind: str, user: User, school_id: str, **fields):
        record = models[kind](
            school_id=school_id,
            user_id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            image=user.image,
            age=user.age,
            gender=user.gender,
            **fields,
        )
        return _stamp(record)

    return _make


@pytest.fixture
def current_user_for():
    """Build the authenticated caller for a user."""

    def _make(user: User) -> CurrentUser:
        role = user.role.value if user.role else None
        return CurrentUser(id=user.id, email=user.email, role=role)

    return _make
