"""
Background Scheduler

APScheduler (AsyncIO) wrapper for periodic maintenance such as the hourly
verification code purge.

Jobs live in a module registry that outlives the scheduler itself: a job
registered before ``start_scheduler`` is scheduled when it starts, and any
registered job can be run on demand with ``trigger_job_manually``. Each job
opens its own database session and must be safe to run twice.
"""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

# Missed runs collapse into one, never overlap, and may start up to 5 min late
JOB_DEFAULTS: dict[str, Any] = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 300,
}


@dataclass
class _RegisteredJob:
    func: JobFunc
    trigger: BaseTrigger


_scheduler: AsyncIOScheduler | None = None
_job_registry: dict[str, _RegisteredJob] = {}


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(f"Job {event.job_id} raised: {event.exception}", exc_info=event.exception)
    else:
        logger.info(f"Job {event.job_id} finished")


def get_scheduler() -> AsyncIOScheduler | None:
    """The running scheduler, or None before start / after stop."""
    return _scheduler


def _schedule(job_id: str, job: _RegisteredJob) -> None:
    assert _scheduler is not None
    _scheduler.add_job(job.func, trigger=job.trigger, id=job_id, replace_existing=True)
    logger.info(f"Scheduled job {job_id} ({job.trigger})")


async def start_scheduler() -> AsyncIOScheduler:
    """
    Create the scheduler, schedule every registered job and start it.

    Calling it again while running returns the running instance.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job_id, job in _job_registry.items():
        _schedule(job_id, job)

    _scheduler.start()
    logger.info(f"Scheduler started with {len(_job_registry)} job(s)")
    return _scheduler


async def stop_scheduler() -> None:
    """Shut the scheduler down, letting running jobs finish."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler stopped")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Add a job to the registry, replacing any job with the same ID.

    The job is scheduled right away when the scheduler is already running,
    otherwise on ``start_scheduler``.
    """
    job = _RegisteredJob(func=func, trigger=trigger)
    _job_registry[job_id] = job

    if _scheduler is not None:
        _schedule(job_id, job)


def list_registered_jobs() -> list[str]:
    return list(_job_registry)


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job now, outside its schedule.

    A failing job is reported in the returned dict rather than raised.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at, and
        the job's result or error message

    Raises:
        ValueError: If no job is registered under job_id
    """
    job = _job_registry.get(job_id)
    if job is None:
        raise ValueError(f"Job {job_id} not found. Registered jobs: {list_registered_jobs()}")

    outcome: dict[str, Any] = {
        "job_id": job_id,
        "executed_at": datetime.now(UTC).isoformat(),
    }
    logger.info(f"Running job {job_id} on demand")

    try:
        outcome["result"] = await job.func()
    except Exception as e:
        logger.error(f"On-demand run of job {job_id} failed: {e}", exc_info=True)
        outcome.update(status="error", error=str(e))
        return outcome

    outcome["status"] = "success"
    return outcome
