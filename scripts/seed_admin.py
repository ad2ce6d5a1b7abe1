"""
Seed Admin User

Creates the initial admin account. Admin accounts cannot sign up through the
API, so this script is the only way to create one.

Credentials are read from the environment:
    SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD
    SEED_ADMIN_FIRST_NAME, SEED_ADMIN_LAST_NAME (optional)

Usage:
    SEED_ADMIN_EMAIL=admin@example.com SEED_ADMIN_PASSWORD=... python scripts/seed_admin.py
"""

import asyncio
import os
import sys

from schools_api.core.database import async_session_maker, close_db
from schools_api.core.security import hash_password
from schools_api.modules.schools.models import School  # noqa: F401 - needed for relationship resolution
from schools_api.modules.users.models import UserRole
from schools_api.modules.users.repository import UserRepository


async def seed_admin() -> int:
    """Create the admin account if it doesn't exist. Returns the exit code."""
    email = os.getenv("SEED_ADMIN_EMAIL", "").strip()
    password = os.getenv("SEED_ADMIN_PASSWORD", "")
    first_name = os.getenv("SEED_ADMIN_FIRST_NAME", "Platform")
    last_name = os.getenv("SEED_ADMIN_LAST_NAME", "Admin")

    if not email or len(password) < 8:
        print("SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD (8+ characters) must be set")
        return 1

    try:
        async with async_session_maker() as db:
            existing_user = await UserRepository.get_by_email(db, email)

            if existing_user:
                print(f"Account already exists: {existing_user.email}")
                print(f"  ID: {existing_user.id}")
                print(f"  Role: {existing_user.role.value}")
                return 0

            admin_user = await UserRepository.create(
                db,
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=UserRole.ADMIN,
            )

            print("Admin created successfully!")
            print(f"  Email: {admin_user.email}")
            print(f"  Name: {admin_user.full_name}")
            print(f"  ID: {admin_user.id}")
    finally:
        await close_db()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(seed_admin()))
