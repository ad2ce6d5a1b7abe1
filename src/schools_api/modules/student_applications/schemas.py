"""
Student Applications Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from schools_api.modules.student_applications.models import ApplicationStatus


class StudentApplicationCreate(BaseModel):
    """Request body for POST /applications."""

    school_id: UUID

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(None, max_length=30)
    date_of_birth: date | None = None
    current_grade: str | None = Field(None, max_length=50)
    desired_grade: str | None = Field(None, max_length=50)
    previous_school: str | None = Field(None, max_length=255)

    parent_name: str | None = Field(None, max_length=200)
    parent_email: EmailStr | None = None
    parent_phone: str | None = Field(None, max_length=30)

    address: str | None = Field(None, max_length=500)
    additional_info: str | None = Field(None, max_length=2000)


class StudentApplicationUpdate(BaseModel):
    """
    Request body for PUT /applications/{id}.

    Only the fields that are sent are changed. Status cannot be changed here;
    use the approve / reject / withdraw endpoints.
    """

    phone: str | None = Field(None, max_length=30)
    current_grade: str | None = Field(None, max_length=50)
    desired_grade: str | None = Field(None, max_length=50)
    parent_name: str | None = Field(None, max_length=200)
    parent_email: EmailStr | None = None
    parent_phone: str | None = Field(None, max_length=30)
    address: str | None = Field(None, max_length=500)
    additional_info: str | None = Field(None, max_length=2000)


class RejectRequest(BaseModel):
    """
    Request body for POST /applications/{id}/reject.

    An empty reason is accepted here and refused by the service with
    MISSING_REASON.
    """

    reason: str = Field("", max_length=2000)


class StudentApplicationResponse(BaseModel):
    """Full view of an application."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    applicant_id: UUID
    school_id: UUID
    school_name: str | None = None
    school_location: str | None = None
    school_type: str | None = None
    school_level: str | None = None

    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    date_of_birth: date | None = None
    current_grade: str | None = None
    desired_grade: str | None = None
    previous_school: str | None = None
    parent_name: str | None = None
    parent_email: str | None = None
    parent_phone: str | None = None
    address: str | None = None
    additional_info: str | None = None

    status: ApplicationStatus
    rejection_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None

    created_at: datetime
    updated_at: datetime


class SchoolApplicationResponse(StudentApplicationResponse):
    """
    Application as listed for a school's reviewers.

    Adds the applicant's account name and email next to the snapshot taken
    at submission.
    """

    user_first_name: str | None = None
    user_last_name: str | None = None
    user_email: str | None = None


class MessageResponse(BaseModel):
    message: str
