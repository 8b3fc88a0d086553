"""
Seed Admin User

Creates an ADMIN user who can create schools and seed their administration.
Credentials are read from the command line or the environment, never from
this file.

Usage:
    cd apps/api
    SEED_ADMIN_PASSWORD=... python scripts/seed_admin.py admin@example.com "Admin Name"
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.database import async_session_maker, close_db, transaction
from app.core.security import hash_password
from app.modules.shared.identifiers import generate_username
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository


async def seed_admin(email: str, name: str, password: str) -> None:
    """Create the admin user if it doesn't exist."""
    async with async_session_maker() as db:
        existing_user = await UserRepository.get_by_email(db, email)

        if existing_user:
            print(f"User already exists: {existing_user.email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Role: {existing_user.role.value if existing_user.role else None}")
            return

        async with transaction(db):
            admin_user = await UserRepository.create(
                db,
                email=email,
                username=generate_username(name),
                name=name,
                password_hash=hash_password(password),
                role=UserRole.ADMIN,
            )

        print("Admin created successfully!")
        print(f"  Email: {admin_user.email}")
        print(f"  Username: {admin_user.username}")
        print(f"  ID: {admin_user.id}")

    await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an ADMIN user.")
    parser.add_argument("email")
    parser.add_argument("name")
    args = parser.parse_args()

    password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not password:
        parser.error("SEED_ADMIN_PASSWORD must be set")

    asyncio.run(seed_admin(args.email, args.name, password))


if __name__ == "__main__":
    main()
