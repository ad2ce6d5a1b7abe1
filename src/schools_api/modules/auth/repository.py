"""
Verification Code Repository

Ledger operations for one-time login codes. Each write is a complete
transaction and is retried on transient storage failures.
"""

import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.database import retry_transient

from .models import VerificationCode


# Dialects whose INSERT supports ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@retry_transient
async def replace_code(
    db: AsyncSession,
    email: str,
    code: str,
    expires_at: datetime,
) -> VerificationCode:
    """
    Issue a new code for an email, invalidating every earlier one.

    A single INSERT ... ON CONFLICT (email) DO UPDATE against the unique email
    index: concurrent issues for the same email serialize on that row and the
    last one wins. The row gets a new id each time, so a verification holding
    the id of a superseded code cannot consume the new one.
    """
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Code upsert not supported on {dialect}")

    stmt = insert(VerificationCode).values(
        id=uuid.uuid4(),
        email=email,
        code=code,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[VerificationCode.email],
        set_={
            "id": stmt.excluded.id,
            "code": stmt.excluded.code,
            "expires_at": stmt.excluded.expires_at,
            "created_at": func.now(),
        },
    ).returning(VerificationCode)

    result = await db.scalars(stmt, execution_options={"populate_existing": True})
    new_code = result.one()
    await db.commit()

    return new_code


async def get_latest_matching(
    db: AsyncSession,
    email: str,
    code: str,
) -> VerificationCode | None:
    """Get the most recently issued code row for an email matching ``code``."""
    result = await db.execute(
        select(VerificationCode)
        .where(
            VerificationCode.email == email,
            VerificationCode.code == code,
        )
        .order_by(VerificationCode.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


@retry_transient
async def delete_code(db: AsyncSession, code_id: UUID) -> bool:
    """
    Delete a code row.

    Returns:
        True if this call removed the row, False if it was already gone
        (consumed by a concurrent request)
    """
    result = await db.execute(delete(VerificationCode).where(VerificationCode.id == code_id))
    await db.commit()
    return result.rowcount == 1


@retry_transient
async def delete_expired(db: AsyncSession, now: datetime) -> int:
    """
    Delete every code whose expiry has passed.

    Returns:
        Number of rows removed
    """
    result = await db.execute(delete(VerificationCode).where(VerificationCode.expires_at <= now))
    await db.commit()
    return result.rowcount or 0
