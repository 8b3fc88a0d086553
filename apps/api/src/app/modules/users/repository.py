"""
User Repository

Database operations for user management.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import Gender, User, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        username: str,
        name: str,
        password_hash: str | None = None,
        role: UserRole | None = None,
        phone: str | None = None,
        gender: Gender | None = None,
        age: dict | None = None,
        address: dict | None = None,
        image: str | None = None,
    ) -> User:
        """
        Create a new user record.

        Args:
            db: Database session
            email: User's email address (unique)
            username: Generated username (unique)
            name: Display name
            password_hash: Hashed password (optional)
            role: Platform role (optional)
            phone: Phone number (optional)
            gender: Gender (optional)
            age: Date of birth as {year, month, day} (optional)
            address: Free-form address document (optional)
            image: Profile image URL (optional)

        Returns:
            Created User instance
        """
        user = User(
            email=email.lower(),
            username=username,
            name=name,
            password_hash=password_hash,
            role=role,
            phone=phone,
            gender=gender,
            age=age,
            address=address,
            image=image,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} - {user.email}")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str | UUID) -> User | None:
        """
        Get a user by ID.

        Args:
            db: Database session
            user_id: User UUID

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(User.id == str(user_id)))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """
        Get a user by email address (case-insensitive).

        Args:
            db: Database session
            email: Email address

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check if an email address is already registered."""
        user = await UserRepository.get_by_email(db, email)
        return user is not None

    @staticmethod
    async def username_exists(db: AsyncSession, username: str) -> bool:
        """Check if a username is already taken."""
        result = await db.execute(select(User.id).where(User.username == username))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def set_current_school(db: AsyncSession, user: User, school_id: str) -> User:
        """
        Point the user at the school they just joined.

        Only flushes; the caller owns the transaction.
        """
        user.current_school_id = school_id
        await db.flush()
        logger.info(f"User {user.id} current school set to {school_id}")
        return user
