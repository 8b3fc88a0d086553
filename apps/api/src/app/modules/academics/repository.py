"""
Academics Repository

Bulk database operations for classes and modules. Everything here only
flushes so the provisioning routine can run inside a single transaction.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Class, Module


async def create_classes(db: AsyncSession, rows: list[dict]) -> int:
    """Insert class rows in bulk and return how many were added."""
    if not rows:
        return 0

    db.add_all([Class(**row) for row in rows])
    await db.flush()
    return len(rows)


async def get_classes_by_usernames(
    db: AsyncSession,
    school_id: str,
    usernames: list[str],
) -> list[Class]:
    """
    Re-read freshly inserted classes by their generated usernames.

    Usernames are globally unique, so this returns exactly the classes of
    the current provisioning run even when an earlier run produced classes
    with identical names.
    """
    if not usernames:
        return []

    result = await db.execute(
        select(Class).where(Class.school_id == school_id, Class.username.in_(usernames))
    )
    return list(result.scalars().all())


async def create_modules(db: AsyncSession, rows: list[dict]) -> int:
    """Insert module rows in bulk and return how many were added."""
    if not rows:
        return 0

    db.add_all([Module(**row) for row in rows])
    await db.flush()
    return len(rows)
