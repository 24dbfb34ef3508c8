"""LMS controller: maps service results to HTTP responses, catches domain exceptions."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    CourseNotPublishedError,
    EnrollmentNotCancellableError,
    EnrollmentNotFoundError,
    InactiveAccountError,
    LessonNotFoundError,
    NotEnrolledError,
    PaymentRequiredError,
)
from app.lms import service
from app.lms.schemas import (
    CheckEnrollmentRequest,
    CompleteLessonRequest,
    CompleteLessonResponse,
    CourseProgressResponse,
    CreateEnrollmentRequest,
    EnrollmentCheckResponse,
    EnrollmentResponse,
)
from app.models.enums import EnrollmentStatus

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, (CourseNotFoundError, LessonNotFoundError, EnrollmentNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AlreadyEnrolledError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already enrolled in this course.")
    if isinstance(exc, EnrollmentNotCancellableError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only active enrollments can be cancelled.")
    if isinstance(exc, CourseNotPublishedError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course is not published.")
    if isinstance(exc, PaymentRequiredError):
        return HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="Payment required for this course.")
    if isinstance(exc, NotEnrolledError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course.")
    if isinstance(exc, InactiveAccountError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive.")
    logger.exception("Unexpected LMS error", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


async def enroll_free(
    db: AsyncSession,
    user_id: UUID,
    body: CreateEnrollmentRequest,
) -> EnrollmentResponse:
    try:
        enrollment = await service.enroll_free(db, user_id, body.course_id)
        return EnrollmentResponse.model_validate(enrollment)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def get_my_enrollments(
    db: AsyncSession,
    user_id: UUID,
    *,
    enrollment_status: EnrollmentStatus | None,
    course_id: UUID | None,
    limit: int,
    offset: int,
) -> dict:
    try:
        enrollments, total = await service.get_my_enrollments(
            db, user_id, status=enrollment_status, course_id=course_id, limit=limit, offset=offset,
        )
        return {
            "items": [EnrollmentResponse.model_validate(e) for e in enrollments],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def check_enrollment(
    db: AsyncSession,
    user_id: UUID,
    body: CheckEnrollmentRequest,
) -> EnrollmentCheckResponse:
    try:
        enrollment, is_active, is_expired = await service.check_enrollment(db, user_id, body.course_id)
        return EnrollmentCheckResponse(
            enrolled=enrollment is not None,
            is_active=is_active,
            is_expired=is_expired,
            enrollment=EnrollmentResponse.model_validate(enrollment) if enrollment else None,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def cancel_enrollment(
    db: AsyncSession,
    user_id: UUID,
    enrollment_id: UUID,
) -> EnrollmentResponse:
    try:
        enrollment = await service.cancel_my_enrollment(db, enrollment_id, user_id)
        return EnrollmentResponse.model_validate(enrollment)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def complete_lesson(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    lesson_id: UUID,
    body: CompleteLessonRequest | None,
) -> CompleteLessonResponse:
    try:
        summary, already_completed = await service.complete_lesson(
            db, user_id, course_slug, lesson_id,
            watched_secs=body.watched_secs if body else None,
        )
        return CompleteLessonResponse(
            completed=summary.completed,
            total=summary.total,
            percentage=summary.percentage,
            is_complete=summary.is_complete,
            already_completed=already_completed,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def get_course_progress(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
) -> CourseProgressResponse:
    try:
        enrollment, summary = await service.get_course_progress(db, user_id, course_slug)
        return CourseProgressResponse(
            completed=summary.completed,
            total=summary.total,
            percentage=summary.percentage,
            is_complete=summary.is_complete,
            enrollment_id=enrollment.enrollment_id,
            status=enrollment.status,
            completed_at=enrollment.completed_at,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
