"""Builders for accounts, schools and applications used across the test suite."""

from datetime import UTC, datetime
from unittest.mock import MagicMock
from uuid import uuid4

from schools_api.core.security import hash_password
from schools_api.modules.schools.models import School
from schools_api.modules.student_applications.models import (
    ApplicationStatus,
    StudentApplication,
)
from schools_api.modules.users.models import User, UserRole

DEFAULT_PASSWORD = "correct-horse-battery"


def make_user(role: UserRole = UserRole.STUDENT, email: str = "student@test.com"):
    """Build a mock account."""
    user = MagicMock(spec=User)
    user.id = uuid4()
    user.email = email
    user.password_hash = "hashed"
    user.first_name = "Ama"
    user.last_name = "Mensah"
    user.full_name = "Ama Mensah"
    user.role = role
    user.created_at = datetime.now(UTC)
    user.updated_at = datetime.now(UTC)
    return user


def make_school(leader=None):
    """Build a mock school, optionally owned by ``leader``."""
    school = MagicMock(spec=School)
    school.id = uuid4()
    school.name = "Sunrise Academy"
    school.leader = leader
    school.leader_id = leader.id if leader is not None else None
    return school


def make_application(
    school_id=None,
    applicant_id=None,
    status: ApplicationStatus = ApplicationStatus.PENDING,
):
    """Build a mock application."""
    now = datetime.now(UTC)
    application = MagicMock(spec=StudentApplication)
    application.id = uuid4()
    application.applicant_id = applicant_id or uuid4()
    application.school_id = school_id or uuid4()
    application.school_name = "Sunrise Academy"
    application.school_location = "Monrovia"
    application.school_type = "private"
    application.school_level = "secondary"
    application.user_first_name = "Kofi"
    application.user_last_name = "Boateng"
    application.user_email = "kofi@test.com"
    application.first_name = "Kofi"
    application.last_name = "Boateng"
    application.applicant_name = "Kofi Boateng"
    application.email = "kofi@test.com"
    application.phone = None
    application.date_of_birth = None
    application.current_grade = "9"
    application.desired_grade = "10"
    application.previous_school = None
    application.parent_name = None
    application.parent_email = None
    application.parent_phone = None
    application.address = None
    application.additional_info = None
    application.status = status
    application.rejection_reason = None
    application.reviewed_by = None
    application.reviewed_at = None
    application.created_at = now
    application.updated_at = now
    return application


async def create_account(db, *, email: str, role: UserRole, password: str = DEFAULT_PASSWORD) -> User:
    """Insert an account into a real database session."""
    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name="Test",
        last_name=role.value.title(),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_school(db, *, leader_id=None, name: str = "Sunrise Academy") -> School:
    """Insert a school into a real database session."""
    school = School(
        name=name,
        location="Monrovia",
        type="private",
        level="secondary",
        students=300,
        leader_id=leader_id,
    )
    db.add(school)
    await db.commit()
    await db.refresh(school)
    return school
