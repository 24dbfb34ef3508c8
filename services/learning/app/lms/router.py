"""LMS router: HTTP layer only.

Defines the enrollment and progress endpoints.
Delegates to controller for business logic orchestration.
"""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.lms import controller
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
from app.pagination import OffsetPage
from app.rate_limit import limiter

router = APIRouter(tags=["LMS"])


# ======================================================================
# Enrollment endpoints
# ======================================================================


@router.post(
    "/enrollments",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a free course",
    description="Creates an enrollment for a free course. "
    "Returns 402 if the course requires payment, 409 if already enrolled.",
)
@limiter.limit("10/minute")
async def enroll_free(
    request: Request,
    body: CreateEnrollmentRequest,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> EnrollmentResponse:
    return await controller.enroll_free(db, user_id, body)


@router.get(
    "/enrollments",
    response_model=OffsetPage[EnrollmentResponse],
    summary="List my enrollments",
)
async def get_my_enrollments(
    enrollment_status: EnrollmentStatus | None = Query(None, alias="status"),
    course_id: UUID | None = Query(None, description="Filter to one course."),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> dict:
    return await controller.get_my_enrollments(
        db, user_id,
        enrollment_status=enrollment_status, course_id=course_id, limit=limit, offset=offset,
    )


@router.post(
    "/enrollments/check",
    response_model=EnrollmentCheckResponse,
    summary="Check enrollment status for a course",
)
async def check_enrollment(
    body: CheckEnrollmentRequest,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> EnrollmentCheckResponse:
    return await controller.check_enrollment(db, user_id, body)


@router.delete(
    "/enrollments/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Cancel my enrollment",
    description="Marks the enrollment cancelled. The row is kept for history.",
)
async def cancel_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> EnrollmentResponse:
    return await controller.cancel_enrollment(db, user_id, enrollment_id)


# ======================================================================
# Progress endpoints
# ======================================================================


@router.post(
    "/courses/{course_slug}/lessons/{lesson_id}/complete",
    response_model=CompleteLessonResponse,
    summary="Mark a lesson complete",
    description="Records lesson completion (idempotent) and returns the "
    "recomputed course progress.",
)
async def complete_lesson(
    course_slug: str,
    lesson_id: UUID,
    body: CompleteLessonRequest | None = Body(None),
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> CompleteLessonResponse:
    return await controller.complete_lesson(db, user_id, course_slug, lesson_id, body)


@router.get(
    "/courses/{course_slug}/progress",
    response_model=CourseProgressResponse,
    summary="Get my progress in a course",
)
async def get_course_progress(
    course_slug: str,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
) -> CourseProgressResponse:
    return await controller.get_course_progress(db, user_id, course_slug)
