"""create identity and application tables

Revision ID: a0b1c2d3e4f5
Revises:
Create Date: 2026-10-19 12:00:00.000000

This migration creates:
1. users - accounts with a fixed role (student, leader, admin)
2. verification_codes - one-time login codes (one row per email, unique)
3. schools - directory entries owned by a leader
4. student_applications - one per (applicant, school), with review fields

Tables are created in dependency order so every foreign key target exists.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a0b1c2d3e4f5"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create all tables."""
    user_role_enum = postgresql.ENUM(
        "student",
        "leader",
        "admin",
        name="user_role",
        create_type=False,
    )
    user_role_enum.create(op.get_bind(), checkfirst=True)

    application_status_enum = postgresql.ENUM(
        "pending",
        "approved",
        "rejected",
        "withdrawn",
        name="application_status",
        create_type=False,
    )
    application_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "verification_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_verification_codes_email", "verification_codes", ["email"], unique=True
    )
    op.create_index("ix_verification_codes_expires_at", "verification_codes", ["expires_at"])

    op.create_table(
        "schools",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("level", sa.String(length=50), nullable=False),
        sa.Column("students", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("leader_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(["leader_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_schools_name", "schools", ["name"])
    op.create_index("ix_schools_leader_id", "schools", ["leader_id"])

    op.create_table(
        "student_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("applicant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        # Applicant snapshot
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("current_grade", sa.String(length=50), nullable=True),
        sa.Column("desired_grade", sa.String(length=50), nullable=True),
        sa.Column("previous_school", sa.String(length=255), nullable=True),
        sa.Column("parent_name", sa.String(length=200), nullable=True),
        sa.Column("parent_email", sa.String(length=255), nullable=True),
        sa.Column("parent_phone", sa.String(length=30), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=True),
        # Lifecycle
        sa.Column("status", application_status_enum, nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["applicant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "applicant_id", "school_id", name="uq_student_applications_applicant_school"
        ),
    )
    op.create_index("ix_student_applications_school_id", "student_applications", ["school_id"])
    op.create_index("ix_student_applications_status", "student_applications", ["status"])


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_index("ix_student_applications_status", table_name="student_applications")
    op.drop_index("ix_student_applications_school_id", table_name="student_applications")
    op.drop_table("student_applications")

    op.drop_index("ix_schools_leader_id", table_name="schools")
    op.drop_index("ix_schools_name", table_name="schools")
    op.drop_table("schools")

    op.drop_index("ix_verification_codes_expires_at", table_name="verification_codes")
    op.drop_index("ix_verification_codes_email", table_name="verification_codes")
    op.drop_table("verification_codes")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS application_status")
    op.execute("DROP TYPE IF EXISTS user_role")
