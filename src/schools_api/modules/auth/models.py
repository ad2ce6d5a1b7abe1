"""
Authentication Models

The verification code ledger: one-time login codes for the second factor.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from schools_api.core.database import Base


class VerificationCode(Base):
    """
    One-time numeric login code.

    At most one row exists per email (unique index): issuing a code upserts
    the row with a fresh id, code and expiry, so every earlier code stops
    matching. Rows are deleted when used or found expired.
    """

    __tablename__ = "verification_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(10), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_verification_codes_email", "email", unique=True),
        Index("ix_verification_codes_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        # Never include the code itself
        return f"<VerificationCode(id={self.id}, email={self.email})>"
