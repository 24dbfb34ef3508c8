"""LMS domain Pydantic V2 schemas.

Covers Enrollment and lesson progress.
Follows RORO: separate request models from response models.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import EnrollmentStatus


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


class CreateEnrollmentRequest(BaseModel):
    """Free enrollment. Priced courses go through the payment flow."""

    course_id: UUID


class CheckEnrollmentRequest(BaseModel):
    course_id: UUID


class EnrollmentResponse(BaseModel):
    """Enrollment record."""

    model_config = ConfigDict(from_attributes=True)

    enrollment_id: UUID
    user_id: UUID
    course_id: UUID
    payment_id: UUID | None
    status: EnrollmentStatus
    progress_pct: int
    enrolled_at: datetime
    completed_at: datetime | None
    last_accessed_at: datetime | None
    expires_at: datetime | None


class EnrollmentCheckResponse(BaseModel):
    enrolled: bool
    is_active: bool
    is_expired: bool
    enrollment: EnrollmentResponse | None = None


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class CompleteLessonRequest(BaseModel):
    watched_secs: int | None = Field(None, ge=0, description="Seconds of the lesson watched so far.")


class ProgressResponse(BaseModel):
    completed: int
    total: int
    percentage: int = Field(ge=0, le=100)
    is_complete: bool


class CompleteLessonResponse(ProgressResponse):
    already_completed: bool


class CourseProgressResponse(ProgressResponse):
    enrollment_id: UUID
    status: EnrollmentStatus
    completed_at: datetime | None
