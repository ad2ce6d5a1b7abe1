"""
Authentication Background Jobs

Hourly purge of expired verification codes. Expired codes are already
rejected at verification time; the purge only keeps the ledger small.

The job is idempotent: a second run finds nothing left to delete.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from schools_api.core.database import async_session_maker
from schools_api.core.scheduler import register_job
from schools_api.modules.auth import repository

logger = logging.getLogger(__name__)

JOB_ID_PURGE_EXPIRED_CODES = "auth_purge_expired_codes"


async def purge_expired_codes() -> dict[str, Any]:
    """
    Delete every verification code whose expiry has passed.

    Returns:
        Dict with execution summary: executed_at, deleted
    """
    executed_at = datetime.now(UTC)

    async with async_session_maker() as db:
        deleted = await repository.delete_expired(db, executed_at)

    logger.info(f"Expired code purge completed. Deleted: {deleted}")

    return {
        "executed_at": executed_at.isoformat(),
        "deleted": deleted,
    }


def register_auth_jobs() -> None:
    """Register the authentication background jobs with the scheduler."""
    register_job(
        job_id=JOB_ID_PURGE_EXPIRED_CODES,
        func=purge_expired_codes,
        trigger=IntervalTrigger(hours=1),
    )
