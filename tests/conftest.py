"""
Shared test fixtures.

Settings are read once at import time, so the test environment is set up
here, before any application module is imported.
"""

import os

os.environ.setdefault("PYTHON_ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("DB_RETRY_ATTEMPTS", "3")

from unittest.mock import AsyncMock, MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from schools_api.core.database import Base  # noqa: E402
from schools_api.core.rate_limit import reset_rate_limits  # noqa: E402

# Register every table on Base.metadata
from schools_api.modules.auth.models import VerificationCode  # noqa: E402, F401
from schools_api.modules.schools.models import School  # noqa: E402, F401
from schools_api.modules.student_applications.models import StudentApplication  # noqa: E402, F401
from schools_api.modules.users.models import User  # noqa: E402, F401


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    Session factory bound to a fresh file-backed SQLite database.

    NullPool gives every session its own connection, so concurrent sessions
    contend through SQLite's locks like separate requests would.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def patient_retries():
    """
    Allow more transient-failure retries.

    SQLite answers a lock-upgrade conflict with an immediate "database is
    locked", so heavily contended tests need more than the default attempts.
    """
    with patch("schools_api.core.database.settings.db_retry_attempts", 10):
        yield
