"""
Unit tests for the join request service layer.

These tests cover:
- Request creation (school lookup, replacement of pending self-submitted requests)
- Acceptance (authentication, ownership, status, membership conflicts, token)
- Rejection (status checks, best-effort notification)
- Direct join by school username and code
- Editing and removal of requests
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.security import TOKEN_TYPE_SCHOOL, decode_token
from app.modules.join_requests.models import JoinRequestStatus
from app.modules.join_requests import repository as join_request_repository
from app.modules.join_requests.schemas import (
    JoinByCodeRequest,
    JoinRequestCreate,
    JoinRequestUpdate,
)
from app.modules.join_requests.service import (
    DuplicateJoinRequestError,
    InvalidJoinCodeError,
    InvalidJoinRoleError,
    JoinCodeNotConfiguredError,
    JoinRequestNotFoundError,
    JoinRequestNotPendingError,
    JoinRequestOwnershipError,
    MembershipConflictError,
    accept_request,
    create_join_request,
    join_school_by_code_and_username,
    reject_request,
    remove_join_request,
    update_join_request,
)
from app.modules.memberships.types import (
    MembershipKind,
    StaffMembership,
    StudentMembership,
    TeacherMembership,
)
from app.modules.shared import BadRequestError, NotFoundError, UnauthorizedError
from app.modules.users.models import UserRole

SERVICE = "app.modules.join_requests.service"


class _UniqueViolation(Exception):
    constraint_name = "uq_teachers_user_id_school_id"


async def _set_status(db, join_request, status):
    join_request.status = status
    return join_request


class TestCreateJoinRequest:
    """Tests for create_join_request."""

    @pytest.mark.asyncio
    async def test_missing_school_is_not_found(self, mock_db):
        data = JoinRequestCreate(school_id=uuid4(), role="TEACHER", email="a@school.edu.sl")

        with patch(f"{SERVICE}.SchoolRepository") as mock_schools:
            mock_schools.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError) as exc_info:
                await create_join_request(mock_db, data)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_links_registered_user(self, mock_db, school, make_user, make_join_request):
        user = make_user(UserRole.TEACHER)
        created = make_join_request(school.id, user_id=user.id)
        data = JoinRequestCreate(
            school_id=school.id, role="TEACHER", name="Someone Else", email="AMINA@school.edu.sl"
        )

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_schools.get_by_id = AsyncMock(return_value=school)
            mock_users.get_by_email = AsyncMock(return_value=user)
            mock_repo.get_by_email_and_school = AsyncMock(return_value=None)
            mock_repo.create = AsyncMock(return_value=created)

            result = await create_join_request(mock_db, data)

        assert result is created
        kwargs = mock_repo.create.call_args.kwargs
        assert kwargs["email"] == "amina@school.edu.sl"
        assert kwargs["user_id"] == user.id
        assert kwargs["name"] == user.name
        assert kwargs["from_user"] is True
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_replaces_pending_self_submitted_request(
        self, mock_db, school, make_join_request
    ):
        existing = make_join_request(school.id, role="STUDENT")
        replacement = make_join_request(school.id, role="TEACHER")
        data = JoinRequestCreate(school_id=school.id, role="TEACHER", email="amina@school.edu.sl")

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_schools.get_by_id = AsyncMock(return_value=school)
            mock_users.get_by_email = AsyncMock(return_value=None)
            mock_repo.get_by_email_and_school = AsyncMock(return_value=existing)
            mock_repo.delete = AsyncMock()
            mock_repo.create = AsyncMock(return_value=replacement)

            result = await create_join_request(mock_db, data)

        assert result is replacement
        mock_repo.delete.assert_awaited_once_with(mock_db, existing)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "from_user"),
        [
            (JoinRequestStatus.ACCEPTED, True),
            (JoinRequestStatus.REJECTED, True),
            (JoinRequestStatus.PENDING, False),
        ],
    )
    async def test_other_existing_requests_block_creation(
        self, mock_db, school, make_join_request, status, from_user
    ):
        existing = make_join_request(school.id, status=status, from_user=from_user)
        data = JoinRequestCreate(school_id=school.id, role="TEACHER", email="amina@school.edu.sl")

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_schools.get_by_id = AsyncMock(return_value=school)
            mock_users.get_by_email = AsyncMock(return_value=None)
            mock_repo.get_by_email_and_school = AsyncMock(return_value=existing)
            mock_repo.create = AsyncMock()

            with pytest.raises(DuplicateJoinRequestError):
                await create_join_request(mock_db, data)

        mock_repo.create.assert_not_called()
        mock_db.rollback.assert_awaited_once()


class TestAcceptRequest:
    """Tests for accept_request."""

    @pytest.mark.asyncio
    async def test_requires_authenticated_caller(self, mock_db):
        with pytest.raises(UnauthorizedError):
            await accept_request(mock_db, str(uuid4()), None)

    @pytest.mark.asyncio
    async def test_malformed_id_is_bad_request(self, mock_db, make_user, current_user_for):
        caller = current_user_for(make_user())

        with pytest.raises(BadRequestError) as exc_info:
            await accept_request(mock_db, "not-a-uuid", caller)

        assert exc_info.value.error_code == "INVALID_ID"

    @pytest.mark.asyncio
    async def test_missing_request_is_not_found(self, mock_db, make_user, current_user_for):
        caller = current_user_for(make_user())

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(JoinRequestNotFoundError):
                await accept_request(mock_db, str(uuid4()), caller)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [JoinRequestStatus.ACCEPTED, JoinRequestStatus.REJECTED])
    async def test_decided_request_cannot_be_accepted(
        self, mock_db, school, make_user, make_join_request, current_user_for, status
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, status=status)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.create_membership = AsyncMock()

            with pytest.raises(JoinRequestNotPendingError) as exc_info:
                await accept_request(mock_db, join_request.id, current_user_for(user))

        assert exc_info.value.message == f"Join request is already {status.value}."
        mock_memberships.create_membership.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_mismatch_is_rejected(
        self, mock_db, school, make_user, make_join_request, current_user_for
    ):
        user = make_user(UserRole.TEACHER, email="someone@else.edu.sl")
        join_request = make_join_request(school.id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_users.get_by_id = AsyncMock(return_value=user)

            with pytest.raises(JoinRequestOwnershipError):
                await accept_request(mock_db, join_request.id, current_user_for(user))

        assert join_request.status == JoinRequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_email_comparison_ignores_case(
        self,
        mock_db,
        school,
        make_user,
        make_join_request,
        make_membership_record,
        current_user_for,
    ):
        user = make_user(UserRole.TEACHER, email="Amina@School.edu.sl")
        join_request = make_join_request(school.id, email="amina@school.edu.sl")
        record = make_membership_record("teacher", user, school.id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)

            result = await accept_request(mock_db, join_request.id, current_user_for(user))

        assert result.accepted_request.status == JoinRequestStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_accept_teacher_creates_membership_and_token(
        self,
        mock_db,
        school,
        make_user,
        make_join_request,
        make_membership_record,
        current_user_for,
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, role="TEACHER")
        record = make_membership_record("teacher", user, school.id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)

            result = await accept_request(mock_db, join_request.id, current_user_for(user))

        assert result.accepted_request.status == JoinRequestStatus.ACCEPTED
        mock_users.set_current_school.assert_awaited_once_with(mock_db, user, school.id)
        mock_db.commit.assert_awaited_once()

        claims = decode_token(result.token)
        assert claims["type"] == TOKEN_TYPE_SCHOOL
        assert claims["sub"] == record.id
        assert claims["user_id"] == user.id
        assert claims["school_id"] == school.id
        assert claims["role"] == "TEACHER"
        assert "class_id" not in claims

    @pytest.mark.asyncio
    async def test_accept_student_keeps_class_placement(
        self,
        mock_db,
        school,
        make_user,
        make_join_request,
        make_membership_record,
        current_user_for,
    ):
        user = make_user(UserRole.STUDENT)
        class_id = str(uuid4())
        join_request = make_join_request(school.id, role="STUDENT", class_id=class_id)
        record = make_membership_record("student", user, school.id, class_id=class_id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)

            result = await accept_request(mock_db, join_request.id, current_user_for(user))

        membership = mock_memberships.create_membership.call_args.args[1]
        assert isinstance(membership, StudentMembership)
        assert membership.class_id == class_id
        assert decode_token(result.token)["class_id"] == class_id

    @pytest.mark.asyncio
    async def test_accept_staff_title_becomes_staff_membership(
        self,
        mock_db,
        school,
        make_user,
        make_join_request,
        make_membership_record,
        current_user_for,
    ):
        user = make_user(UserRole.SCHOOLSTAFF)
        join_request = make_join_request(school.id, role="Librarian")
        record = make_membership_record("staff", user, school.id, role="Librarian")

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)

            result = await accept_request(mock_db, join_request.id, current_user_for(user))

        membership = mock_memberships.create_membership.call_args.args[1]
        assert isinstance(membership, StaffMembership)
        assert membership.staff_role == "Librarian"
        assert decode_token(result.token)["role"] == "Librarian"

    @pytest.mark.asyncio
    async def test_existing_membership_of_any_kind_conflicts(
        self,
        mock_db,
        school,
        make_user,
        make_join_request,
        make_membership_record,
        current_user_for,
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, role="TEACHER")
        existing = make_membership_record("student", user, school.id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.find_membership = AsyncMock(
                return_value=(MembershipKind.STUDENT, existing)
            )
            mock_memberships.create_membership = AsyncMock()

            with pytest.raises(MembershipConflictError) as exc_info:
                await accept_request(mock_db, join_request.id, current_user_for(user))

        assert "already has a role in this school" in exc_info.value.message
        assert join_request.status == JoinRequestStatus.PENDING
        mock_memberships.create_membership.assert_not_called()
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_unique_violation_rolls_back_and_names_constraint(
        self, mock_db, school, make_user, make_join_request, current_user_for
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, role="TEACHER")
        violation = IntegrityError("INSERT INTO teachers", {}, _UniqueViolation("duplicate key"))

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(side_effect=violation)

            with pytest.raises(MembershipConflictError) as exc_info:
                await accept_request(mock_db, join_request.id, current_user_for(user))

        assert "uq_teachers_user_id_school_id" in exc_info.value.message
        mock_repo.update_status.assert_not_called()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_role_is_bad_request(
        self, mock_db, school, make_user, make_join_request, current_user_for
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, role="Principal")

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_users.get_by_id = AsyncMock(return_value=user)

            with pytest.raises(InvalidJoinRoleError):
                await accept_request(mock_db, join_request.id, current_user_for(user))

    @pytest.mark.asyncio
    async def test_database_failure_rolls_back_and_is_bad_request(
        self, mock_db, school, make_user, make_join_request, current_user_for
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, role="TEACHER")
        outage = OperationalError("INSERT INTO teachers", {}, Exception("connection reset"))

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(side_effect=outage)

            with pytest.raises(BadRequestError) as exc_info:
                await accept_request(mock_db, join_request.id, current_user_for(user))

        assert exc_info.value.error_code == "ACCEPT_FAILED"
        assert exc_info.value.status_code == 400
        assert join_request.status == JoinRequestStatus.PENDING
        mock_repo.update_status.assert_not_called()
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_accept_creates_no_second_membership(
        self,
        mock_db,
        school,
        make_user,
        make_join_request,
        make_membership_record,
        current_user_for,
    ):
        user = make_user(UserRole.TEACHER)
        join_request = make_join_request(school.id, role="TEACHER")
        record = make_membership_record("teacher", user, school.id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)

            await accept_request(mock_db, join_request.id, current_user_for(user))

            with pytest.raises(JoinRequestNotPendingError):
                await accept_request(mock_db, join_request.id, current_user_for(user))

        assert join_request.status == JoinRequestStatus.ACCEPTED
        mock_memberships.create_membership.assert_awaited_once()
        mock_repo.update_status.assert_awaited_once()
        mock_db.commit.assert_awaited_once()


class TestRejectRequest:
    """Tests for reject_request."""

    @pytest.mark.asyncio
    async def test_reject_pending_request_notifies_contact(
        self, mock_db, school, make_join_request
    ):
        join_request = make_join_request(school.id, role="STUDENT")

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.send_join_request_rejected") as mock_email,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_schools.get_by_id = AsyncMock(return_value=school)
            mock_email.return_value = True

            result = await reject_request(mock_db, join_request.id)

        assert result.status == JoinRequestStatus.REJECTED
        mock_email.assert_awaited_once()
        assert mock_email.call_args.kwargs["school_name"] == school.name

    @pytest.mark.asyncio
    async def test_email_failure_does_not_fail_rejection(self, mock_db, school, make_join_request):
        join_request = make_join_request(school.id)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.send_join_request_rejected") as mock_email,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock(side_effect=_set_status)
            mock_schools.get_by_id = AsyncMock(return_value=school)
            mock_email.side_effect = RuntimeError("provider down")

            result = await reject_request(mock_db, join_request.id)

        assert result.status == JoinRequestStatus.REJECTED
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reject_decided_request_fails(self, mock_db, school, make_join_request):
        join_request = make_join_request(school.id, status=JoinRequestStatus.ACCEPTED)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_status = AsyncMock()

            with pytest.raises(JoinRequestNotPendingError):
                await reject_request(mock_db, join_request.id)

        mock_repo.update_status.assert_not_called()


class TestJoinSchoolByCode:
    """Tests for join_school_by_code_and_username."""

    @pytest.mark.asyncio
    async def test_unknown_school_is_not_found(
        self, mock_db, join_codes, make_user, current_user_for
    ):
        user = make_user()

        with patch(f"{SERVICE}.SchoolRepository") as mock_schools:
            mock_schools.get_by_username = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError):
                await join_school_by_code_and_username(
                    mock_db,
                    current_user_for(user),
                    JoinByCodeRequest(username="nowhere", code=join_codes["student"]),
                )

    @pytest.mark.asyncio
    async def test_wrong_code_is_rejected(
        self, mock_db, join_codes, school, make_user, current_user_for
    ):
        user = make_user(UserRole.STUDENT)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.create_membership = AsyncMock()

            with pytest.raises(InvalidJoinCodeError) as exc_info:
                await join_school_by_code_and_username(
                    mock_db,
                    current_user_for(user),
                    JoinByCodeRequest(username=school.username, code=join_codes["teacher"]),
                )

        assert exc_info.value.message == "Invalid code"
        mock_memberships.create_membership.assert_not_called()

    @pytest.mark.asyncio
    async def test_student_joins_immediately(
        self, mock_db, join_codes, school, make_user, make_membership_record, current_user_for
    ):
        user = make_user(UserRole.STUDENT)
        record = make_membership_record("student", user, school.id)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)

            result = await join_school_by_code_and_username(
                mock_db,
                current_user_for(user),
                JoinByCodeRequest(username=school.username, code=join_codes["student"]),
            )

        assert result.status == "joined"
        assert result.membership.kind == MembershipKind.STUDENT
        assert result.membership.role == "STUDENT"
        assert result.join_request is None
        assert decode_token(result.token)["sub"] == record.id
        mock_users.set_current_school.assert_awaited_once_with(mock_db, user, school.id)

    @pytest.mark.asyncio
    async def test_verification_required_files_pending_request(
        self, mock_db, join_codes, school, make_user, make_join_request, current_user_for
    ):
        school.required_verification_to_join_by_code = True
        user = make_user(UserRole.TEACHER)
        pending = make_join_request(school.id, role="TEACHER", user_id=user.id)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock()
            mock_repo.get_by_email_and_school = AsyncMock(return_value=None)
            mock_repo.create = AsyncMock(return_value=pending)

            result = await join_school_by_code_and_username(
                mock_db,
                current_user_for(user),
                JoinByCodeRequest(username=school.username, code=join_codes["teacher"]),
            )

        assert result.status == "pending"
        assert result.token is None
        assert str(result.join_request.id) == pending.id
        assert mock_repo.create.call_args.kwargs["role"] == "TEACHER"
        mock_memberships.create_membership.assert_not_called()

    @pytest.mark.asyncio
    async def test_staff_always_files_pending_request_with_title(
        self, mock_db, join_codes, school, make_user, make_join_request, current_user_for
    ):
        user = make_user(UserRole.SCHOOLSTAFF)
        pending = make_join_request(school.id, role="Accountant", user_id=user.id)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_repo.get_by_email_and_school = AsyncMock(return_value=None)
            mock_repo.create = AsyncMock(return_value=pending)

            result = await join_school_by_code_and_username(
                mock_db,
                current_user_for(user),
                JoinByCodeRequest(
                    username=school.username, code=join_codes["staff"], staff_role="Accountant"
                ),
            )

        assert result.status == "pending"
        assert mock_repo.create.call_args.kwargs["role"] == "Accountant"

    @pytest.mark.asyncio
    async def test_staff_without_title_is_bad_request(
        self, mock_db, join_codes, school, make_user, current_user_for
    ):
        user = make_user(UserRole.SCHOOLSTAFF)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)

            with pytest.raises(BadRequestError) as exc_info:
                await join_school_by_code_and_username(
                    mock_db,
                    current_user_for(user),
                    JoinByCodeRequest(username=school.username, code=join_codes["staff"]),
                )

        assert exc_info.value.error_code == "STAFF_ROLE_REQUIRED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.ADMIN, None])
    async def test_roles_without_code_cannot_join(
        self, mock_db, join_codes, school, make_user, current_user_for, role
    ):
        user = make_user(role)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)

            with pytest.raises(InvalidJoinRoleError):
                await join_school_by_code_and_username(
                    mock_db,
                    current_user_for(user),
                    JoinByCodeRequest(username=school.username, code=join_codes["student"]),
                )

    @pytest.mark.asyncio
    async def test_missing_school_code_is_reported(
        self, mock_db, join_codes, school, make_user, current_user_for
    ):
        school.teachers_code = None
        user = make_user(UserRole.TEACHER)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)

            with pytest.raises(JoinCodeNotConfiguredError):
                await join_school_by_code_and_username(
                    mock_db,
                    current_user_for(user),
                    JoinByCodeRequest(username=school.username, code=join_codes["teacher"]),
                )

    @pytest.mark.asyncio
    async def test_existing_member_cannot_join_again(
        self, mock_db, join_codes, school, make_user, make_membership_record, current_user_for
    ):
        user = make_user(UserRole.STUDENT)
        existing = make_membership_record("teacher", user, school.id)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_memberships.find_membership = AsyncMock(
                return_value=(MembershipKind.TEACHER, existing)
            )
            mock_memberships.create_membership = AsyncMock()

            with pytest.raises(MembershipConflictError):
                await join_school_by_code_and_username(
                    mock_db,
                    current_user_for(user),
                    JoinByCodeRequest(username=school.username, code=join_codes["student"]),
                )

        mock_memberships.create_membership.assert_not_called()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_teacher_joins_immediately_without_class(
        self, mock_db, join_codes, school, make_user, make_membership_record, current_user_for
    ):
        user = make_user(UserRole.TEACHER)
        record = make_membership_record("teacher", user, school.id)

        with (
            patch(f"{SERVICE}.SchoolRepository") as mock_schools,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.membership_repository") as mock_memberships,
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_schools.get_by_username = AsyncMock(return_value=school)
            mock_users.get_by_id = AsyncMock(return_value=user)
            mock_users.set_current_school = AsyncMock()
            mock_memberships.find_membership = AsyncMock(return_value=None)
            mock_memberships.create_membership = AsyncMock(return_value=record)
            mock_repo.create = AsyncMock()

            result = await join_school_by_code_and_username(
                mock_db,
                current_user_for(user),
                JoinByCodeRequest(username=school.username, code=join_codes["teacher"]),
            )

        assert result.status == "joined"
        assert result.membership.kind == MembershipKind.TEACHER
        assert result.join_request is None
        membership = mock_memberships.create_membership.call_args.args[1]
        assert isinstance(membership, TeacherMembership)
        mock_repo.create.assert_not_called()

        claims = decode_token(result.token)
        assert claims["sub"] == record.id
        assert claims["role"] == "TEACHER"
        assert "class_id" not in claims


class TestUpdateJoinRequest:
    """Tests for update_join_request."""

    @pytest.mark.asyncio
    async def test_edits_contact_fields_only(self, mock_db, school, make_join_request):
        join_request = make_join_request(school.id, role="TEACHER")
        original_school = join_request.school_id
        data = JoinRequestUpdate(
            **{
                "role": "Accountant",
                "email": "Accounts@School.edu.sl",
                "status": "accepted",
                "school_id": str(uuid4()),
                "user_id": str(uuid4()),
            }
        )

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_fields = AsyncMock(side_effect=join_request_repository.update_fields)

            result = await update_join_request(mock_db, join_request.id, data)

        assert result.role == "Accountant"
        assert result.email == "accounts@school.edu.sl"
        assert result.status == JoinRequestStatus.PENDING
        assert result.school_id == original_school
        assert result.user_id is None
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [JoinRequestStatus.ACCEPTED, JoinRequestStatus.REJECTED])
    async def test_decided_request_cannot_be_edited(
        self, mock_db, school, make_join_request, status
    ):
        join_request = make_join_request(school.id, role="TEACHER", status=status)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_fields = AsyncMock()

            with pytest.raises(JoinRequestNotPendingError):
                await update_join_request(
                    mock_db, join_request.id, JoinRequestUpdate(role="STUDENT")
                )

        assert join_request.role == "TEACHER"
        mock_repo.update_fields.assert_not_called()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_request_is_not_found(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(JoinRequestNotFoundError):
                await update_join_request(mock_db, str(uuid4()), JoinRequestUpdate(name="New"))

    @pytest.mark.asyncio
    async def test_email_collision_is_duplicate(self, mock_db, school, make_join_request):
        join_request = make_join_request(school.id)
        violation = IntegrityError(
            "UPDATE school_join_requests", {}, Exception("duplicate key")
        )

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.update_fields = AsyncMock(side_effect=violation)

            with pytest.raises(DuplicateJoinRequestError):
                await update_join_request(
                    mock_db, join_request.id, JoinRequestUpdate(email="taken@school.edu.sl")
                )

        mock_db.rollback.assert_awaited_once()


class TestRemoveJoinRequest:
    """Tests for remove_join_request."""

    @pytest.mark.asyncio
    async def test_deletes_and_returns_request(self, mock_db, school, make_join_request):
        join_request = make_join_request(school.id)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=join_request)
            mock_repo.delete = AsyncMock()

            result = await remove_join_request(mock_db, join_request.id)

        assert result is join_request
        mock_repo.delete.assert_awaited_once_with(mock_db, join_request)
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_request_is_not_found(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)
            mock_repo.delete = AsyncMock()

            with pytest.raises(JoinRequestNotFoundError):
                await remove_join_request(mock_db, str(uuid4()))

        mock_repo.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_id_is_bad_request(self, mock_db):
        with pytest.raises(BadRequestError) as exc_info:
            await remove_join_request(mock_db, "not-a-uuid")

        assert exc_info.value.error_code == "INVALID_ID"
