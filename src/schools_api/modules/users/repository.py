"""
User Repository

Credential store operations.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for account database operations."""

    @staticmethod
    def normalize_email(email: str) -> str:
        """Emails are unique case-insensitively; store and query them lower-cased."""
        return email.strip().lower()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: UserRole,
    ) -> User:
        """
        Create a new account and commit it.

        Args:
            db: Database session
            email: Email address (normalized before storage)
            password_hash: Hashed password
            first_name: First name
            last_name: Last name
            role: Account role

        Returns:
            Created User instance

        Raises:
            IntegrityError: If the email is already registered
        """
        user = User(
            email=UserRepository.normalize_email(email),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )

        db.add(user)
        await db.commit()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        """Get an account by ID."""
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Get an account by email address (case-insensitive)."""
        result = await db.execute(
            select(User).where(User.email == UserRepository.normalize_email(email))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check if an email address is already registered."""
        user = await UserRepository.get_by_email(db, email)
        return user is not None
