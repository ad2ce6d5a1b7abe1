"""
School Repository

Read access to the school directory.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.modules.schools.models import School

logger = logging.getLogger(__name__)


class SchoolRepository:
    """Repository for school lookups."""

    @staticmethod
    async def get_by_id(db: AsyncSession, school_id: UUID) -> School | None:
        """
        Get a school by ID, with its leader loaded.

        Args:
            db: Database session
            school_id: School UUID

        Returns:
            School instance or None if not found
        """
        return await db.get(School, school_id)

    @staticmethod
    def is_owned_by(school: School, account_id: UUID) -> bool:
        """Check whether ``account_id`` is the school's leader."""
        return school.leader_id is not None and school.leader_id == account_id
