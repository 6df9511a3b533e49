"""
Seed Admin User

Creates the first admin account for the Transfer Intake API.
Run this script once to set up the admin account.

Credentials are read from the environment:
    ADMIN_SEED_EMAIL     login email
    ADMIN_SEED_PASSWORD  password (at least 8 characters)

Usage:
    ADMIN_SEED_EMAIL=admin@example.com ADMIN_SEED_PASSWORD=... python scripts/seed_admin.py
"""

import asyncio
import os
import sys

from transfer_intake.core.database import async_session_maker, close_db
from transfer_intake.core.security import hash_password
from transfer_intake.modules.admins.repository import AdminUserRepository

MIN_PASSWORD_LENGTH = 8


async def seed_admin(email: str, password: str) -> None:
    """Create the admin user if it doesn't exist."""
    async with async_session_maker() as db:
        existing = await AdminUserRepository.get_by_email(db, email)

        if existing:
            print(f"Admin already exists: {existing.email}")
            print(f"  ID: {existing.id}")
            print(f"  Active: {existing.active}")
            return

        admin = await AdminUserRepository.create(
            db,
            email=email,
            password_hash=hash_password(password),
        )
        await db.commit()

        print("Admin created successfully!")
        print(f"  Email: {admin.email}")
        print(f"  ID: {admin.id}")

    await close_db()


def main() -> int:
    email = os.getenv("ADMIN_SEED_EMAIL")
    password = os.getenv("ADMIN_SEED_PASSWORD")

    if not email or not password:
        print("ADMIN_SEED_EMAIL and ADMIN_SEED_PASSWORD must be set", file=sys.stderr)
        return 1

    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", file=sys.stderr)
        return 1

    asyncio.run(seed_admin(email, password))
    return 0


if __name__ == "__main__":
    sys.exit(main())
