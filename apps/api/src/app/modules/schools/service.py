"""
Schools Service Layer

Business logic for the school registry.

This module implements:
1. School Creation:
   - Only SCHOOLSTAFF and ADMIN users may create schools
   - A taken username is replaced by a generated one
   - Plaintext join codes are hashed before storage

2. Academic Structure Provisioning (ATOMIC):
   - Expands the curriculum configuration into classes and modules
   - Inserts classes, re-reads them, links and inserts modules, then records
     the academic profile and totals on the school, all in one transaction
   - Generated identifier collisions retry the whole run with fresh
     identifiers a bounded number of times

3. Administration Seeding:
   - Headmaster, director of studies and additional contacts become pending
     join requests addressed to their email, with invitation emails
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.database import transaction
from app.core.email import send_join_invitation
from app.core.security import hash_code
from app.modules.academics import repository as academics_repository
from app.modules.join_requests import repository as join_request_repository
from app.modules.schools.academic import (
    MAX_CLASS_USERNAME_LENGTH,
    AcademicPlan,
    academic_year_for,
    build_academic_plan,
    build_academic_profile,
)
from app.modules.schools.models import School
from app.modules.schools.repository import SchoolRepository
from app.modules.schools.schemas import (
    AcademicSetupResponse,
    AdministrationJoinRequestsResponse,
    SchoolAcademicCreate,
    SchoolAdministrationCreate,
    SchoolCreate,
)
from app.modules.shared import BadRequestError, NotFoundError, UnauthorizedError
from app.modules.shared.errors import integrity_error_field
from app.modules.shared.identifiers import generate_code, generate_username
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Constants
SCHOOL_CREATOR_ROLES = {UserRole.SCHOOLSTAFF, UserRole.ADMIN}
MAX_PROVISIONING_ATTEMPTS = 3
MAX_USERNAME_ATTEMPTS = 5


class SchoolNotFoundError(NotFoundError):
    """Raised when a school is not found."""

    def __init__(self, identifier: str | UUID | None = None):
        super().__init__("School", identifier)


class SchoolCreationNotAllowedError(BadRequestError):
    """Raised when the creator's role may not create schools."""

    def __init__(self):
        super().__init__(
            message="You can not create a school.",
            error_code="SCHOOL_CREATION_NOT_ALLOWED",
        )


class AcademicProvisioningError(BadRequestError):
    """Raised when the academic structure could not be written."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="ACADEMIC_PROVISIONING_FAILED")


# ============================================
# School Registry
# ============================================


async def _available_username(db: AsyncSession, requested: str | None, name: str) -> str:
    """Return the requested username if free, otherwise a generated free one."""
    if requested and not await SchoolRepository.username_exists(db, requested):
        return requested

    for _ in range(MAX_USERNAME_ATTEMPTS):
        candidate = generate_username(name)
        if not await SchoolRepository.username_exists(db, candidate):
            if requested:
                logger.info(f"School username '{requested}' taken, using '{candidate}'")
            return candidate

    raise BadRequestError("Could not generate a unique school username, please try again.")


async def create_school(
    db: AsyncSession,
    creator: CurrentUser | None,
    data: SchoolCreate,
) -> School:
    """
    Create a school owned by the calling user.

    Args:
        db: Database session
        creator: Authenticated caller
        data: School fields with plaintext join codes

    Returns:
        The created School

    Raises:
        UnauthorizedError: If there is no authenticated caller
        SchoolCreationNotAllowedError: If the caller is not SCHOOLSTAFF or ADMIN
        BadRequestError: If a unique field collides
    """
    if creator is None:
        raise UnauthorizedError("You must be signed in to create a school.")

    user = await UserRepository.get_by_id(db, creator.id)
    if not user or user.role not in SCHOOL_CREATOR_ROLES:
        logger.warning(f"User {creator.id} is not allowed to create schools")
        raise SchoolCreationNotAllowedError()

    username = await _available_username(db, data.username, data.name)

    try:
        async with transaction(db):
            school = await SchoolRepository.create(
                db,
                username=username,
                name=data.name,
                creator_id=user.id,
                description=data.description,
                school_type=data.school_type,
                email=data.email,
                phone=data.phone,
                address=data.address,
                image=data.image,
                students_code=hash_code(data.students_code) if data.students_code else None,
                teachers_code=hash_code(data.teachers_code) if data.teachers_code else None,
                school_staffs_code=(
                    hash_code(data.school_staffs_code) if data.school_staffs_code else None
                ),
                required_verification_to_join_by_code=data.required_verification_to_join_by_code,
            )
    except IntegrityError as e:
        field = integrity_error_field(e)
        logger.warning(f"School creation conflict on {field}")
        if field and "username" in field:
            raise BadRequestError("School with this username already exists.") from e
        raise BadRequestError(f"Could not create school: {field or 'unique constraint'}") from e

    logger.info(f"User {user.id} created school {school.id} ({school.username})")
    return school


async def get_school(db: AsyncSession, school_id: str | UUID) -> School:
    """
    Get a school by ID.

    Raises:
        BadRequestError: If the ID is not a UUID
        SchoolNotFoundError: If the school doesn't exist
    """
    try:
        school_id = str(UUID(str(school_id)))
    except ValueError as e:
        raise BadRequestError(f"Invalid school id: {school_id}", error_code="INVALID_ID") from e

    school = await SchoolRepository.get_by_id(db, school_id)
    if not school:
        raise SchoolNotFoundError(school_id)
    return school


async def get_school_by_username(db: AsyncSession, username: str) -> School:
    """
    Get a school by username.

    Raises:
        SchoolNotFoundError: If the school doesn't exist
    """
    school = await SchoolRepository.get_by_username(db, username)
    if not school:
        raise SchoolNotFoundError(username)
    return school


# ============================================
# Academic Structure
# ============================================


async def _write_academic_plan(
    db: AsyncSession,
    school: School,
    plan: AcademicPlan,
    academic_profile: dict,
) -> tuple[int, int]:
    """
    Persist a plan with freshly generated identifiers.

    Must run inside a transaction. Returns (classes created, modules created).
    """
    class_rows = []
    for planned in plan.classes:
        class_rows.append(
            {
                "school_id": school.id,
                "name": planned.name,
                "username": generate_username(planned.name, MAX_CLASS_USERNAME_LENGTH),
                "code": generate_code(),
                "education_lever": planned.education_lever,
                "curriculum": planned.curriculum,
                "class_type": "SchoolClass",
                "academic_year": plan.academic_year,
            }
        )

    classes_created = await academics_repository.create_classes(db, class_rows)

    # Re-read by generated username to obtain ids for exactly this run
    usernames = [row["username"] for row in class_rows]
    stored = await academics_repository.get_classes_by_usernames(db, school.id, usernames)
    class_ids = {stored_class.username: stored_class.id for stored_class in stored}

    module_rows = []
    for planned, row in zip(plan.classes, class_rows, strict=True):
        class_id = class_ids[row["username"]]
        for module in planned.modules:
            module_rows.append(
                {
                    "school_id": school.id,
                    "name": module.name,
                    "code": generate_code(),
                    "subject_type": module.subject_type,
                    "class_id": class_id,
                }
            )

    modules_created = await academics_repository.create_modules(db, module_rows)

    await SchoolRepository.update_academic_profile(
        db,
        school,
        academic_profile=academic_profile,
        total_classes=classes_created,
        total_modules=modules_created,
    )

    return classes_created, modules_created


async def setup_academic_structure(
    db: AsyncSession,
    config: SchoolAcademicCreate,
    today: datetime | None = None,
) -> AcademicSetupResponse:
    """
    Generate classes and modules for a school's curriculum.

    Not idempotent: every call creates a new, disjoint set of classes and
    modules for the current academic year.

    Args:
        db: Database session
        config: Validated curriculum configuration
        today: Reference date for the academic year (defaults to now, UTC)

    Returns:
        AcademicSetupResponse with the number of classes and modules created

    Raises:
        SchoolNotFoundError: If the school doesn't exist
        AcademicProvisioningError: If identifiers keep colliding or a write fails
    """
    school_id = str(config.school_id)
    school = await get_school(db, school_id)

    academic_year = academic_year_for((today or datetime.now(UTC)).date())
    plan = build_academic_plan(school.name, config, academic_year)
    academic_profile = build_academic_profile(config)

    logger.info(
        f"Provisioning academic structure for school {school_id}: "
        f"{plan.total_classes} classes, {plan.total_modules} modules ({academic_year})"
    )

    last_error: IntegrityError | None = None
    for attempt in range(1, MAX_PROVISIONING_ATTEMPTS + 1):
        try:
            async with transaction(db):
                total_classes, total_modules = await _write_academic_plan(
                    db, school, plan, academic_profile
                )
        except IntegrityError as e:
            last_error = e
            field = integrity_error_field(e)
            logger.warning(
                f"Identifier collision on {field} provisioning school {school_id} "
                f"(attempt {attempt}/{MAX_PROVISIONING_ATTEMPTS})"
            )
            # The rollback expired the school row; reload before retrying
            school = await get_school(db, school_id)
            continue
        except DBAPIError as e:
            logger.error(f"Provisioning school {school_id} failed: {e}", exc_info=True)
            raise AcademicProvisioningError(
                f"Could not store the academic structure: {e.orig or e}"
            ) from e

        logger.info(
            f"Academic structure created for school {school_id}: "
            f"{total_classes} classes, {total_modules} modules"
        )
        return AcademicSetupResponse(total_classes=total_classes, total_module=total_modules)

    field = integrity_error_field(last_error) if last_error else None
    raise AcademicProvisioningError(
        f"A generated identifier was not unique ({field or 'unknown'}), please try again."
    ) from last_error


# ============================================
# Administration Seeding
# ============================================


def _administration_contacts(data: SchoolAdministrationCreate) -> list[dict]:
    contacts = [
        {
            "role": "Headmaster",
            "name": data.headmaster_name,
            "email": data.headmaster_email,
            "phone": data.headmaster_phone,
        },
        {
            "role": "DirectorOfStudies",
            "name": data.director_of_studies,
            "email": data.principal_email,
            "phone": data.principal_phone,
        },
    ]
    contacts.extend(contact.model_dump() for contact in data.additional_administration)
    return contacts


async def send_administration_join_requests(
    db: AsyncSession,
    data: SchoolAdministrationCreate,
) -> AdministrationJoinRequestsResponse:
    """
    Seed pending staff join requests for a school's administration.

    Contacts whose (email, school) pair already has a join request are
    skipped. Invitation emails are sent after the requests are committed.

    Args:
        db: Database session
        data: Headmaster, director of studies and additional contacts

    Returns:
        AdministrationJoinRequestsResponse with attempted and created counts

    Raises:
        SchoolNotFoundError: If the school doesn't exist
    """
    school = await get_school(db, data.school_id)
    contacts = _administration_contacts(data)

    created = []
    seen_emails: set[str] = set()

    async with transaction(db):
        for contact in contacts:
            email = contact["email"].lower()
            if email in seen_emails:
                continue
            seen_emails.add(email)

            existing = await join_request_repository.get_by_email_and_school(db, email, school.id)
            if existing is not None:
                logger.info(f"Skipping administration contact already invited to school {school.id}")
                continue

            user = await UserRepository.get_by_email(db, email)
            await join_request_repository.create(
                db,
                school_id=school.id,
                role=contact["role"],
                name=contact["name"],
                email=email,
                phone=contact["phone"],
                user_id=user.id if user else None,
                from_user=False,
            )
            created.append(contact)

    logger.info(
        f"Seeded {len(created)}/{len(contacts)} administration join requests for school {school.id}"
    )

    # Send invitations (non-blocking - log error but don't fail the request)
    for contact in created:
        try:
            sent = await send_join_invitation(
                to_email=contact["email"],
                contact_name=contact["name"],
                school_name=school.name,
                role=contact["role"],
            )
            if not sent:
                logger.error(f"Failed to send invitation for school {school.id} ({contact['role']})")
        except Exception as e:
            logger.error(f"Exception sending invitation for school {school.id}: {e}")

    return AdministrationJoinRequestsResponse(
        attempted=len(contacts),
        created=len(created),
        message=f"Created {len(created)} of {len(contacts)} administration join requests.",
    )
