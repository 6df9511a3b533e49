"""
Admin User Repository

Database operations for admin accounts.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.modules.admins.models import AdminUser

logger = logging.getLogger(__name__)


class AdminUserRepository:
    """Repository for admin user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        active: bool = True,
    ) -> AdminUser:
        """
        Create a new admin account.

        Args:
            db: Database session
            email: Login email (stored lower-cased)
            password_hash: Argon2 password hash
            active: Whether the account may log in

        Returns:
            Created AdminUser instance
        """
        admin = AdminUser(
            email=email.strip().lower(),
            password_hash=password_hash,
            active=active,
        )

        db.add(admin)
        await db.flush()
        await db.refresh(admin)

        logger.info(f"Created admin user: {admin.id}")
        return admin

    @staticmethod
    async def get_by_id(db: AsyncSession, admin_id: str | UUID) -> AdminUser | None:
        """Get an admin by ID."""
        result = await db.execute(select(AdminUser).where(AdminUser.id == admin_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> AdminUser | None:
        """Get an admin by email address (case-insensitive)."""
        result = await db.execute(
            select(AdminUser).where(AdminUser.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def record_login(db: AsyncSession, admin_id: UUID) -> None:
        """Stamp last_login_at with the current time."""
        await db.execute(
            update(AdminUser)
            .where(AdminUser.id == admin_id)
            .values(last_login_at=datetime.now(UTC))
        )
        await db.commit()
