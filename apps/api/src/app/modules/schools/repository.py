"""
School Repository

Database operations for school management.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.schools.models import School

logger = logging.getLogger(__name__)


class SchoolRepository:
    """Repository for school database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        username: str,
        name: str,
        creator_id: str | None = None,
        description: str | None = None,
        school_type: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        address: dict | None = None,
        image: str | None = None,
        students_code: str | None = None,
        teachers_code: str | None = None,
        school_staffs_code: str | None = None,
        required_verification_to_join_by_code: bool = False,
    ) -> School:
        """
        Create a new school record.

        Args:
            db: Database session
            username: Unique school handle used for join-by-code
            name: Display name
            creator_id: User who created the school (optional)
            description: Free-text description (optional)
            school_type: Public, private, etc. (optional)
            email: School email (optional)
            phone: School phone (optional)
            address: Address document (optional)
            image: Logo URL (optional)
            students_code: Hashed student join code (optional)
            teachers_code: Hashed teacher join code (optional)
            school_staffs_code: Hashed staff join code (optional)
            required_verification_to_join_by_code: Whether code joins need manual acceptance

        Returns:
            Created School instance
        """
        school = School(
            username=username,
            name=name,
            creator_id=creator_id,
            description=description,
            school_type=school_type,
            email=email,
            phone=phone,
            address=address,
            image=image,
            students_code=students_code,
            teachers_code=teachers_code,
            school_staffs_code=school_staffs_code,
            required_verification_to_join_by_code=required_verification_to_join_by_code,
            total_classes=0,
            total_modules=0,
        )

        db.add(school)
        await db.flush()
        await db.refresh(school)

        logger.info(f"Created school: {school.id} - {school.name}")
        return school

    @staticmethod
    async def get_by_id(db: AsyncSession, school_id: str | UUID) -> School | None:
        """
        Get a school by ID.

        Args:
            db: Database session
            school_id: School UUID

        Returns:
            School instance or None if not found
        """
        result = await db.execute(select(School).where(School.id == str(school_id)))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> School | None:
        """
        Get a school by its unique username.

        Args:
            db: Database session
            username: School username

        Returns:
            School instance or None if not found
        """
        result = await db.execute(select(School).where(School.username == username))
        return result.scalar_one_or_none()

    @staticmethod
    async def username_exists(db: AsyncSession, username: str) -> bool:
        """Check if a school username is already taken."""
        result = await db.execute(select(School.id).where(School.username == username))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def update_academic_profile(
        db: AsyncSession,
        school: School,
        *,
        academic_profile: dict,
        total_classes: int,
        total_modules: int,
    ) -> School:
        """
        Record the generated academic structure on the school.

        Args:
            db: Database session
            school: School to update
            academic_profile: Structured curriculum configuration
            total_classes: Number of classes generated
            total_modules: Number of modules generated

        Returns:
            Updated School instance
        """
        school.academic_profile = academic_profile
        school.total_classes = total_classes
        school.total_modules = total_modules

        await db.flush()

        logger.info(
            f"Updated school {school.id} academic profile: "
            f"{total_classes} classes, {total_modules} modules"
        )
        return school
