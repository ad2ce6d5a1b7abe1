"""
Database Configuration

Async SQLAlchemy engine, session factory and declarative base.

Every request gets its own AsyncSession via the ``get_db`` dependency.
Repository functions own their transaction boundaries (they commit or roll
back before returning), and ``retry_transient`` retries a whole transaction
when the store reports a transient failure.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from schools_api.core.config import settings

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

RETRY_BACKOFF_SECONDS = 0.05


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a database session.

    The session is closed when the request finishes. Uncommitted work is
    rolled back if the handler raised.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Verify the database is reachable. Call on application startup."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()


def is_transient_error(exc: Exception) -> bool:
    """
    Check whether a storage error is worth retrying.

    Lock contention and lost connections surface as OperationalError;
    a dropped connection may also show up as a DBAPIError flagged
    ``connection_invalidated``.
    """
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def retry_transient(
    func: Callable[P, Awaitable[R]],
) -> Callable[P, Awaitable[R]]:
    """
    Retry a repository transaction on transient storage failures.

    The wrapped coroutine must take the AsyncSession as its first argument and
    perform a complete transaction (commit included). On a transient failure
    the session is rolled back and the whole transaction is re-run, up to
    ``settings.db_retry_attempts`` times. Any other error propagates at once.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        db: AsyncSession = args[0]  # type: ignore[assignment]
        attempts = max(1, settings.db_retry_attempts)

        for attempt in range(1, attempts + 1):
            try:
                return await func(*args, **kwargs)
            except DBAPIError as e:
                await db.rollback()
                if not is_transient_error(e) or attempt == attempts:
                    raise
                logger.warning(
                    f"Transient storage error in {func.__name__} "
                    f"(attempt {attempt}/{attempts}): {e.orig}"
                )
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)

        raise RuntimeError("unreachable")  # pragma: no cover

    return wrapper


__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "init_db",
    "close_db",
    "is_transient_error",
    "retry_transient",
]
