"""
Join Requests Service Layer

Business logic for admitting users into schools.

This module implements:
1. Join Request Lifecycle:
   - Create (a pending self-submitted request for the same email and school
     is replaced, last submission wins)
   - Lookups by id, school, user, email and combined filters
   - Edit contact/role fields and delete

2. Acceptance (ATOMIC):
   - Caller must own the request (case-insensitive email match)
   - Creates the role membership, marks the request accepted and points the
     user's current school at the new school in one transaction
   - Issues a school-scoped token after commit

3. Rejection:
   - Pending requests only; a decision email is sent best-effort

4. Direct Join by Code:
   - Caller's platform role selects which hashed join code is checked
   - Students and teachers join immediately unless the school requires
     verification; staff always go through a pending request

Security considerations:
- Join codes are only ever compared through the bcrypt verifier
- Join codes are never logged
- A user may hold at most one membership per school across all three
  membership tables
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.database import transaction
from app.core.email import send_join_request_rejected
from app.core.security import verify_code
from app.modules.join_requests import repository
from app.modules.join_requests.repository import InvalidStatusTransitionError
from app.modules.join_requests.models import JoinRequest, JoinRequestStatus
from app.modules.join_requests.schemas import (
    AcceptJoinRequestResponse,
    JoinByCodeRequest,
    JoinByCodeResponse,
    JoinRequestCreate,
    JoinRequestFilter,
    JoinRequestResponse,
    JoinRequestUpdate,
    MembershipResponse,
)
from app.modules.memberships import repository as membership_repository
from app.modules.memberships.tokens import issue_school_token, membership_role
from app.modules.memberships.types import (
    STUDENT_ROLE,
    TEACHER_ROLE,
    Membership,
    MembershipKind,
    MembershipProfile,
    UnknownRoleError,
    membership_for_role,
)
from app.modules.schools.repository import SchoolRepository
from app.modules.shared import BadRequestError, NotFoundError, UnauthorizedError
from app.modules.shared.errors import integrity_error_field
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


# ============================================
# Errors
# ============================================


class JoinRequestNotFoundError(NotFoundError):
    """Raised when a join request does not exist."""

    def __init__(self, request_id: str | UUID | None = None):
        super().__init__("Join request", request_id)


class JoinRequestNotPendingError(BadRequestError):
    """Raised when accepting or rejecting a request that was already decided."""

    def __init__(self, status: JoinRequestStatus):
        self.current_status = status
        super().__init__(
            message=f"Join request is already {status.value}.",
            error_code="JOIN_REQUEST_NOT_PENDING",
        )


class JoinRequestOwnershipError(BadRequestError):
    """Raised when the caller's email does not match the request."""

    def __init__(self):
        super().__init__(
            message="This join request does not belong to you.",
            error_code="JOIN_REQUEST_NOT_YOURS",
        )


class DuplicateJoinRequestError(BadRequestError):
    """Raised when a non-replaceable request exists for the same email and school."""

    def __init__(self):
        super().__init__(
            message="A join request for this email already exists for this school.",
            error_code="DUPLICATE_JOIN_REQUEST",
        )


class MembershipConflictError(BadRequestError):
    """Raised when the user already holds a role in the school."""

    def __init__(self, field: str | None = None):
        message = "User already has a role in this school"
        if field:
            message = f"{message} ({field})"
        super().__init__(message=message, error_code="MEMBERSHIP_EXISTS")


class InvalidJoinRoleError(BadRequestError):
    """Raised when a role cannot be mapped to a membership."""

    def __init__(self, role: str | None):
        super().__init__(message=f"Invalid role: {role}", error_code="INVALID_ROLE")


class InvalidJoinCodeError(BadRequestError):
    """Raised when a join code does not match the school's hash."""

    def __init__(self):
        super().__init__(message="Invalid code", error_code="INVALID_CODE")


class JoinCodeNotConfiguredError(BadRequestError):
    """Raised when the school has no join code for the caller's role."""

    def __init__(self, school_name: str, role: str):
        super().__init__(
            message=f"School {school_name} does not accept {role.lower()} join codes.",
            error_code="JOIN_CODE_NOT_CONFIGURED",
        )


# ============================================
# Helpers
# ============================================


def _parse_uuid(value: str | UUID, field: str) -> str:
    """
    Validate an identifier and return its canonical string form.

    Raises:
        BadRequestError: If the value is not a UUID
    """
    try:
        return str(UUID(str(value)))
    except ValueError as e:
        raise BadRequestError(f"Invalid {field}: {value}", error_code="INVALID_ID") from e


def _profile_for(user: User, school_id: str) -> MembershipProfile:
    """Snapshot the user's current profile for a membership row."""
    return MembershipProfile(
        school_id=school_id,
        user_id=user.id,
        email=user.email,
        name=user.name,
        phone=user.phone,
        image=user.image,
        age=user.age,
        gender=user.gender,
    )


def _membership_response(kind: MembershipKind, record) -> MembershipResponse:
    return MembershipResponse(
        id=record.id,
        kind=kind,
        school_id=record.school_id,
        user_id=record.user_id,
        name=record.name,
        email=record.email,
        role=membership_role(kind, record),
        class_id=getattr(record, "class_id", None),
    )


async def _create_membership_for_user(
    db: AsyncSession,
    user: User,
    membership: Membership,
):
    """
    Create a membership and move the user's current school, inside the
    caller's transaction.

    Raises:
        MembershipConflictError: If the user already belongs to the school
    """
    school_id = membership.profile.school_id

    existing = await membership_repository.find_membership(db, user.id, school_id)
    if existing is not None:
        kind, _ = existing
        logger.warning(
            f"User {user.id} already holds a {kind.value} membership in school {school_id}"
        )
        raise MembershipConflictError()

    record = await membership_repository.create_membership(db, membership)
    await UserRepository.set_current_school(db, user, school_id)
    return record


async def _clear_replaceable_request(
    db: AsyncSession,
    email: str,
    school_id: str,
) -> None:
    """
    Delete a pending self-submitted request for (email, school) so a new one
    can take its place. Any other existing request blocks the new one.

    Raises:
        DuplicateJoinRequestError: If a non-replaceable request exists
    """
    existing = await repository.get_by_email_and_school(db, email, school_id)
    if existing is None:
        return

    if existing.status == JoinRequestStatus.PENDING and existing.from_user:
        logger.info(f"Replacing pending join request {existing.id} for school {school_id}")
        await repository.delete(db, existing)
        return

    raise DuplicateJoinRequestError()


# ============================================
# Lifecycle
# ============================================


async def create_join_request(
    db: AsyncSession,
    data: JoinRequestCreate,
) -> JoinRequest:
    """
    Create a pending join request.

    When the contact email (or the given user_id) belongs to a registered
    user, the request is linked to that user and takes its display name.

    Args:
        db: Database session
        data: Validated request body

    Returns:
        The new JoinRequest

    Raises:
        NotFoundError: If the school does not exist
        DuplicateJoinRequestError: If a decided or seeded request exists for the pair
    """
    school_id = str(data.school_id)

    school = await SchoolRepository.get_by_id(db, school_id)
    if not school:
        raise NotFoundError("School", school_id)

    email = data.email
    user = None
    if email:
        user = await UserRepository.get_by_email(db, email)
    elif data.user_id:
        user = await UserRepository.get_by_id(db, data.user_id)
        if user:
            email = user.email.lower()

    name = user.name if user else data.name

    try:
        async with transaction(db):
            if email:
                await _clear_replaceable_request(db, email, school_id)

            join_request = await repository.create(
                db,
                school_id=school_id,
                role=data.role,
                name=name,
                email=email,
                phone=data.phone,
                user_id=user.id if user else None,
                class_id=str(data.class_id) if data.class_id else None,
                from_user=True,
            )
    except IntegrityError as e:
        logger.warning(f"Join request insert conflicted for school {school_id}: {e.orig}")
        raise DuplicateJoinRequestError() from e

    logger.info(f"Created join request {join_request.id} ({data.role}) for school {school_id}")
    return join_request


async def find_one(db: AsyncSession, request_id: str | UUID) -> JoinRequest:
    """
    Get a join request by ID.

    Raises:
        BadRequestError: If the id is malformed
        JoinRequestNotFoundError: If the request doesn't exist
    """
    request_id = _parse_uuid(request_id, "join request id")

    join_request = await repository.get_by_id(db, request_id)
    if not join_request:
        raise JoinRequestNotFoundError(request_id)

    return join_request


async def find_all(db: AsyncSession, filters: JoinRequestFilter) -> list[JoinRequest]:
    """List join requests matching the given filters."""
    return await repository.get_filtered(
        db,
        school_id=filters.school_id,
        user_id=filters.user_id,
        email=filters.email,
        status=filters.status,
    )


async def find_by_school_id(db: AsyncSession, school_id: str | UUID) -> list[JoinRequest]:
    """List all join requests for a school."""
    return await repository.get_filtered(db, school_id=_parse_uuid(school_id, "school_id"))


async def find_by_user_id(db: AsyncSession, user_id: str | UUID) -> list[JoinRequest]:
    """List all join requests linked to a user."""
    return await repository.get_filtered(db, user_id=_parse_uuid(user_id, "user_id"))


async def find_by_email(db: AsyncSession, email: str) -> list[JoinRequest]:
    """List all join requests for a contact email."""
    return await repository.get_filtered(db, email=email)


async def update_join_request(
    db: AsyncSession,
    request_id: str | UUID,
    data: JoinRequestUpdate,
) -> JoinRequest:
    """
    Edit role and contact fields of a join request.

    Raises:
        JoinRequestNotFoundError: If the request doesn't exist
        JoinRequestNotPendingError: If the request was already accepted or rejected
        DuplicateJoinRequestError: If the new email collides for the same school
    """
    join_request = await find_one(db, request_id)

    if join_request.status != JoinRequestStatus.PENDING:
        raise JoinRequestNotPendingError(join_request.status)

    fields = data.model_dump(exclude_unset=True)

    try:
        async with transaction(db):
            await repository.update_fields(db, join_request, **fields)
    except IntegrityError as e:
        raise DuplicateJoinRequestError() from e

    logger.info(f"Updated join request {join_request.id}: {sorted(fields)}")
    return join_request


async def remove_join_request(db: AsyncSession, request_id: str | UUID) -> JoinRequest:
    """
    Delete a join request and return the removed record.

    Raises:
        JoinRequestNotFoundError: If the request doesn't exist
    """
    join_request = await find_one(db, request_id)

    async with transaction(db):
        await repository.delete(db, join_request)

    logger.info(f"Deleted join request {join_request.id}")
    return join_request


# ============================================
# Decisions
# ============================================


async def accept_request(
    db: AsyncSession,
    request_id: str,
    current_user: CurrentUser | None,
) -> AcceptJoinRequestResponse:
    """
    Accept a join request on behalf of the user it was addressed to.

    This is the CRITICAL atomic operation that:
    1. Creates the Teacher, Student or SchoolStaff membership
    2. Marks the request accepted
    3. Sets the user's current school

    If any step fails everything rolls back. The token is signed only after
    the transaction commits.

    Args:
        db: Database session
        request_id: Join request id (validated here)
        current_user: Authenticated caller

    Returns:
        AcceptJoinRequestResponse with the school token and accepted request

    Raises:
        UnauthorizedError: If there is no authenticated caller
        BadRequestError: If the id is malformed, the user vanished, the
            request is not pending, the caller does not own it, or the role
            is unknown
        JoinRequestNotFoundError: If the request doesn't exist
        MembershipConflictError: If the user already belongs to the school
    """
    if current_user is None:
        raise UnauthorizedError("You must be signed in to accept a join request.")

    request_id = _parse_uuid(request_id, "join request id")

    join_request = await repository.get_by_id(db, request_id)
    if not join_request:
        raise JoinRequestNotFoundError(request_id)

    user = await UserRepository.get_by_id(db, current_user.id)
    if not user:
        logger.warning(f"Accepting user {current_user.id} no longer exists")
        raise BadRequestError("User account not found.", error_code="USER_NOT_FOUND")

    school_id = _parse_uuid(join_request.school_id, "school_id")

    if join_request.status != JoinRequestStatus.PENDING:
        logger.warning(f"Join request {request_id} is {join_request.status.value}, cannot accept")
        raise JoinRequestNotPendingError(join_request.status)

    if not join_request.email or join_request.email.lower() != user.email.lower():
        logger.warning(f"User {user.id} tried to accept join request {request_id} of another email")
        raise JoinRequestOwnershipError()

    try:
        membership = membership_for_role(
            join_request.role,
            _profile_for(user, school_id),
            class_id=join_request.class_id,
        )
    except UnknownRoleError as e:
        raise InvalidJoinRoleError(join_request.role) from e

    try:
        # ============================================
        # ATOMIC TRANSACTION: All DB operations must succeed
        # ============================================
        async with transaction(db):
            record = await _create_membership_for_user(db, user, membership)
            await repository.update_status(db, join_request, JoinRequestStatus.ACCEPTED)
        # ============================================
        # END ATOMIC TRANSACTION
        # ============================================
    except IntegrityError as e:
        field = integrity_error_field(e)
        logger.warning(f"Membership conflict accepting join request {request_id}: {field}")
        raise MembershipConflictError(field) from e
    except InvalidStatusTransitionError as e:
        raise JoinRequestNotPendingError(e.current_status) from e
    except SQLAlchemyError as e:
        logger.error(f"Failed to accept join request {request_id}: {e}", exc_info=True)
        raise BadRequestError(
            f"Failed to accept join request: {e}", error_code="ACCEPT_FAILED"
        ) from e

    token = issue_school_token(membership.kind, record)

    logger.info(
        f"Join request {request_id} accepted: user {user.id} joined school {school_id} "
        f"as {membership.role}"
    )

    return AcceptJoinRequestResponse(
        token=token,
        accepted_request=JoinRequestResponse.model_validate(join_request),
    )


async def reject_request(db: AsyncSession, request_id: str | UUID) -> JoinRequest:
    """
    Reject a pending join request.

    Raises:
        JoinRequestNotFoundError: If the request doesn't exist
        JoinRequestNotPendingError: If the request was already decided
    """
    join_request = await find_one(db, request_id)

    if join_request.status != JoinRequestStatus.PENDING:
        logger.warning(f"Join request {join_request.id} is {join_request.status.value}, cannot reject")
        raise JoinRequestNotPendingError(join_request.status)

    try:
        async with transaction(db):
            await repository.update_status(db, join_request, JoinRequestStatus.REJECTED)
    except InvalidStatusTransitionError as e:
        raise JoinRequestNotPendingError(e.current_status) from e

    logger.info(f"Join request {join_request.id} rejected")

    # Send decision email (non-blocking - log error but don't fail the request)
    if join_request.email:
        try:
            school = await SchoolRepository.get_by_id(db, join_request.school_id)
            await send_join_request_rejected(
                to_email=join_request.email,
                contact_name=join_request.name or join_request.email,
                school_name=school.name if school else "the school",
                role=join_request.role,
            )
        except Exception as e:
            logger.error(f"Failed to send rejection email for join request {join_request.id}: {e}")

    return join_request


# ============================================
# Direct Join by Code
# ============================================


async def join_school_by_code_and_username(
    db: AsyncSession,
    current_user: CurrentUser,
    data: JoinByCodeRequest,
) -> JoinByCodeResponse:
    """
    Join a school using its username and the join code for the caller's role.

    Students and teachers with a valid code join immediately unless the
    school requires verification, in which case a pending request is filed.
    School staff always get a pending request.

    Args:
        db: Database session
        current_user: Authenticated caller
        data: School username, plaintext code and (for staff) the staff title

    Returns:
        JoinByCodeResponse with either a token and membership or a pending request

    Raises:
        NotFoundError: If the school or user doesn't exist
        JoinCodeNotConfiguredError: If the school has no code for the role
        InvalidJoinCodeError: If the code doesn't match
        InvalidJoinRoleError: If the user's role cannot join by code
        MembershipConflictError: If the user already belongs to the school
    """
    school = await SchoolRepository.get_by_username(db, data.username)
    if not school:
        raise NotFoundError("School", data.username)

    user = await UserRepository.get_by_id(db, current_user.id)
    if not user:
        raise NotFoundError("User", current_user.id)

    if user.role == UserRole.STUDENT:
        code_hash, request_role = school.students_code, STUDENT_ROLE
    elif user.role == UserRole.TEACHER:
        code_hash, request_role = school.teachers_code, TEACHER_ROLE
    elif user.role == UserRole.SCHOOLSTAFF:
        code_hash, request_role = school.school_staffs_code, data.staff_role
    else:
        role = user.role.value if user.role else None
        logger.warning(f"User {user.id} with role {role} attempted a code join")
        raise InvalidJoinRoleError(role)

    if not code_hash:
        raise JoinCodeNotConfiguredError(school.name, user.role.value)

    if not verify_code(data.code, code_hash):
        logger.warning(f"Invalid join code for school {school.id} by user {user.id}")
        raise InvalidJoinCodeError()

    if user.role == UserRole.SCHOOLSTAFF and not request_role:
        raise BadRequestError(
            "staff_role is required for school staff.", error_code="STAFF_ROLE_REQUIRED"
        )

    needs_verification = (
        user.role == UserRole.SCHOOLSTAFF or school.required_verification_to_join_by_code
    )

    if needs_verification:
        try:
            async with transaction(db):
                if await membership_repository.find_membership(db, user.id, school.id):
                    raise MembershipConflictError()
                await _clear_replaceable_request(db, user.email, school.id)
                join_request = await repository.create(
                    db,
                    school_id=school.id,
                    role=request_role,
                    name=user.name,
                    email=user.email,
                    phone=user.phone,
                    user_id=user.id,
                    from_user=True,
                )
        except IntegrityError as e:
            raise DuplicateJoinRequestError() from e

        logger.info(f"User {user.id} filed join request {join_request.id} for school {school.id}")
        return JoinByCodeResponse(
            status="pending",
            message="Join request submitted and awaiting approval.",
            join_request=JoinRequestResponse.model_validate(join_request),
        )

    membership = membership_for_role(request_role, _profile_for(user, school.id))

    try:
        async with transaction(db):
            record = await _create_membership_for_user(db, user, membership)
    except IntegrityError as e:
        raise MembershipConflictError(integrity_error_field(e)) from e

    token = issue_school_token(membership.kind, record)

    logger.info(f"User {user.id} joined school {school.id} as {membership.role} by code")
    return JoinByCodeResponse(
        status="joined",
        message=f"Joined {school.name}.",
        token=token,
        membership=_membership_response(membership.kind, record),
    )
