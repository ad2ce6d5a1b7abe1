"""
User Models

Accounts: the credential store for authentication and authorization.
"""

from enum import Enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from schools_api.modules.shared import BaseModel


class UserRole(str, Enum):
    """
    Account roles.

    Guests are implicit (no session token) and have no member here.
    A role is fixed when the account is created.
    """

    STUDENT = "student"
    LEADER = "leader"
    ADMIN = "admin"


class User(BaseModel):
    """
    Account model.

    Emails are stored normalized (stripped, lower-cased); see
    ``UserRepository.normalize_email``.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.STUDENT,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

    @property
    def full_name(self) -> str:
        """Return user's full name."""
        return f"{self.first_name} {self.last_name}"
