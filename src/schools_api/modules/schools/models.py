"""
School Models

Schools are managed by the directory CRUD layer; this service only reads them
to resolve the owning leader of a student application.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schools_api.modules.shared import BaseModel

if TYPE_CHECKING:
    from schools_api.modules.users.models import User


class School(BaseModel):
    """
    School directory entry.

    ``leader_id`` is the leader account that owns the school and reviews its
    student applications.
    """

    __tablename__ = "schools"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    location: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    level: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    students: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # ON DELETE SET NULL: a removed leader leaves the school unowned (admin-only review)
    leader_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    leader: Mapped["User | None"] = relationship(
        "User",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<School(id={self.id}, name={self.name})>"
