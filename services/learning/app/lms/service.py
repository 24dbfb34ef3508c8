"""LMS service: pure business logic, no FastAPI imports.

Handles enrollment reconciliation (paid and free), cancellation,
lesson completion and progress aggregation, and the enrollment
counter sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, case, func, select, update
from sqlalchemy.exc import IntegrityError
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
from app.models.course import Course
from app.models.course_section import CourseSection
from app.models.enrollment import Enrollment
from app.models.enums import EnrollmentStatus
from app.models.lesson import Lesson
from app.models.lesson_progress import LessonProgress
from app.models.payment import PaymentRecord
from app.models.user import AppUser
from shared.database.types import utcnow

logger = logging.getLogger(__name__)

LEARNING_STATUSES = (EnrollmentStatus.ACTIVE, EnrollmentStatus.COMPLETED)


@dataclass(frozen=True)
class ProgressSummary:
    completed: int
    total: int
    percentage: int

    @property
    def is_complete(self) -> bool:
        return self.percentage == 100


def completion_percentage(completed: int, total: int) -> int:
    """100 * completed / total rounded half up; 0 for an empty course."""
    if total <= 0:
        return 0
    # floor(x + 0.5) in integer arithmetic
    return (200 * completed + total) // (2 * total)


def is_expired(enrollment: Enrollment, now: datetime | None = None) -> bool:
    if enrollment.expires_at is None:
        return False
    return enrollment.expires_at <= (now or utcnow())


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_course_by_id(db: AsyncSession, course_id: UUID) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError(str(course_id))
    return course


async def get_course_by_slug(db: AsyncSession, slug: str) -> Course:
    result = await db.execute(select(Course).where(Course.slug == slug))
    course = result.scalar_one_or_none()
    if course is None:
        raise CourseNotFoundError(slug)
    return course


async def get_lesson_in_course(db: AsyncSession, course_id: UUID, lesson_id: UUID) -> Lesson:
    stmt = (
        select(Lesson)
        .join(CourseSection, CourseSection.section_id == Lesson.section_id)
        .where(Lesson.lesson_id == lesson_id, CourseSection.course_id == course_id)
    )
    result = await db.execute(stmt)
    lesson = result.scalar_one_or_none()
    if lesson is None:
        raise LessonNotFoundError(str(lesson_id))
    return lesson


async def _get_enrollment(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
) -> Enrollment | None:
    stmt = select(Enrollment).where(
        Enrollment.user_id == user_id,
        Enrollment.course_id == course_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_enrollment_by_id(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise EnrollmentNotFoundError(str(enrollment_id))
    return enrollment


async def require_learning_enrollment(
    db: AsyncSession, user_id: UUID, course_id: UUID,
) -> Enrollment:
    """Active or completed, not expired; anything else is ``NotEnrolledError``."""
    enrollment = await _get_enrollment(db, user_id, course_id)
    if enrollment is None or enrollment.status not in LEARNING_STATUSES:
        raise NotEnrolledError()
    if is_expired(enrollment):
        raise NotEnrolledError()
    return enrollment


# ---------------------------------------------------------------------------
# Enrollment counter
# ---------------------------------------------------------------------------


async def _adjust_enrollment_count(db: AsyncSession, course: Course, delta: int) -> None:
    """Atomic in-database increment/decrement, floored at 0."""
    new_value = Course.enrollment_count + delta
    if delta < 0:
        new_value = case((new_value < 0, 0), else_=new_value)
    stmt = (
        update(Course)
        .where(Course.course_id == course.course_id)
        .values(enrollment_count=new_value)
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)
    await db.refresh(course, attribute_names=["enrollment_count"])


# ---------------------------------------------------------------------------
# Enrollment reconciliation
# ---------------------------------------------------------------------------


async def reconcile_enrollment(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
    *,
    payment_id: UUID | None = None,
) -> Enrollment:
    """Make sure (user, course) has a live enrollment. Safe to repeat."""
    user = await db.get(AppUser, user_id)
    if user is None or not user.is_active:
        logger.warning(
            "SECURITY: enrollment refused for inactive or unknown account user=%s course=%s",
            user_id, course_id,
        )
        raise InactiveAccountError(str(user_id))

    course = await get_course_by_id(db, course_id)

    existing = await _get_enrollment(db, user_id, course_id)
    if existing is not None:
        if existing.status != EnrollmentStatus.CANCELLED:
            logger.info(
                "Enrollment already exists user=%s course=%s enrollment=%s",
                user_id, course_id, existing.enrollment_id,
            )
            return existing

        existing.status = EnrollmentStatus.ACTIVE
        existing.enrolled_at = utcnow()
        if payment_id is not None:
            existing.payment_id = payment_id
        await db.flush()
        await _adjust_enrollment_count(db, course, +1)
        # Lesson facts survived the cancellation
        await recompute_progress(db, course_id, user_id, enrollment=existing)
        logger.info("Enrollment reactivated enrollment=%s", existing.enrollment_id)
        return existing

    enrollment = Enrollment(
        user_id=user_id,
        course_id=course_id,
        payment_id=payment_id,
        status=EnrollmentStatus.ACTIVE,
        progress_pct=0,
        enrolled_at=utcnow(),
    )
    db.add(enrollment)
    await db.flush()
    await _adjust_enrollment_count(db, course, +1)
    logger.info(
        "Enrollment created user=%s course=%s enrollment=%s payment=%s",
        user_id, course_id, enrollment.enrollment_id, payment_id,
    )
    return enrollment


async def enroll_free(db: AsyncSession, user_id: UUID, course_id: UUID) -> Enrollment:
    course = await get_course_by_id(db, course_id)
    if not course.is_published:
        raise CourseNotPublishedError()
    if course.effective_price > 0:
        raise PaymentRequiredError()

    existing = await _get_enrollment(db, user_id, course_id)
    if existing is not None and existing.status != EnrollmentStatus.CANCELLED:
        raise AlreadyEnrolledError()

    return await reconcile_enrollment(db, user_id, course_id)


async def cancel_enrollment(db: AsyncSession, enrollment: Enrollment) -> Enrollment:
    if enrollment.status == EnrollmentStatus.CANCELLED:
        return enrollment

    enrollment.status = EnrollmentStatus.CANCELLED
    await db.flush()
    course = await get_course_by_id(db, enrollment.course_id)
    await _adjust_enrollment_count(db, course, -1)
    logger.info("Enrollment cancelled enrollment=%s", enrollment.enrollment_id)
    return enrollment


async def cancel_enrollment_for_payment(
    db: AsyncSession, payment: PaymentRecord,
) -> Enrollment | None:
    stmt = select(Enrollment).where(
        Enrollment.payment_id == payment.payment_id,
        Enrollment.user_id == payment.user_id,
    )
    result = await db.execute(stmt)
    enrollment = result.scalar_one_or_none()
    if enrollment is None:
        logger.warning("No enrollment linked to refunded payment=%s", payment.payment_id)
        return None
    return await cancel_enrollment(db, enrollment)


async def cancel_my_enrollment(
    db: AsyncSession, enrollment_id: UUID, user_id: UUID,
) -> Enrollment:
    enrollment = await get_enrollment_by_id(db, enrollment_id)
    if enrollment.user_id != user_id:
        raise EnrollmentNotFoundError(str(enrollment_id))
    # Refunds may cancel any live row; students only their active ones
    if enrollment.status not in (EnrollmentStatus.ACTIVE, EnrollmentStatus.CANCELLED):
        raise EnrollmentNotCancellableError(str(enrollment_id))
    return await cancel_enrollment(db, enrollment)


async def check_enrollment(
    db: AsyncSession, user_id: UUID, course_id: UUID,
) -> tuple[Enrollment | None, bool, bool]:
    """Return (enrollment, is_active, is_expired)."""
    enrollment = await _get_enrollment(db, user_id, course_id)
    if enrollment is None:
        return None, False, False
    expired = is_expired(enrollment)
    active = enrollment.status in LEARNING_STATUSES and not expired
    return enrollment, active, expired


async def get_my_enrollments(
    db: AsyncSession,
    user_id: UUID,
    *,
    status: EnrollmentStatus | None = None,
    course_id: UUID | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Enrollment], int]:
    base = select(Enrollment).where(Enrollment.user_id == user_id)
    count_base = select(func.count()).select_from(Enrollment).where(Enrollment.user_id == user_id)

    if status is not None:
        base = base.where(Enrollment.status == status)
        count_base = count_base.where(Enrollment.status == status)
    if course_id is not None:
        base = base.where(Enrollment.course_id == course_id)
        count_base = count_base.where(Enrollment.course_id == course_id)

    total = await db.scalar(count_base) or 0
    stmt = base.order_by(Enrollment.enrolled_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def compute_progress(db: AsyncSession, course_id: UUID, user_id: UUID) -> ProgressSummary:
    course_lessons = (
        select(Lesson.lesson_id)
        .join(CourseSection, CourseSection.section_id == Lesson.section_id)
        .where(CourseSection.course_id == course_id)
    )
    total = await db.scalar(
        select(func.count()).select_from(course_lessons.subquery())
    ) or 0
    completed = await db.scalar(
        select(func.count())
        .select_from(LessonProgress)
        .where(
            LessonProgress.user_id == user_id,
            LessonProgress.completed.is_(True),
            LessonProgress.lesson_id.in_(course_lessons),
        )
    ) or 0
    return ProgressSummary(
        completed=completed,
        total=total,
        percentage=completion_percentage(completed, total),
    )


async def recompute_progress(
    db: AsyncSession,
    course_id: UUID,
    user_id: UUID,
    *,
    enrollment: Enrollment | None = None,
) -> ProgressSummary:
    """Full recount from lesson facts, written back to the enrollment.

    Reaching 100% stamps ``completed_at`` once and promotes an active
    enrollment to completed. A completed enrollment is never demoted.
    """
    summary = await compute_progress(db, course_id, user_id)
    if enrollment is None:
        enrollment = await _get_enrollment(db, user_id, course_id)
    if enrollment is None:
        return summary

    now = utcnow()
    enrollment.progress_pct = summary.percentage
    enrollment.last_accessed_at = now
    if summary.is_complete:
        if enrollment.completed_at is None:
            enrollment.completed_at = now
        if enrollment.status == EnrollmentStatus.ACTIVE:
            enrollment.status = EnrollmentStatus.COMPLETED
            logger.info("Course completed enrollment=%s", enrollment.enrollment_id)
    await db.flush()
    return summary


async def _mark_lesson_completed(
    db: AsyncSession,
    user_id: UUID,
    lesson_id: UUID,
    watched_secs: int | None,
) -> bool:
    """Upsert the completion fact. Returns True when it was already completed."""
    now = utcnow()
    progress = await db.get(LessonProgress, (user_id, lesson_id))
    if progress is None:
        progress = LessonProgress(
            user_id=user_id,
            lesson_id=lesson_id,
            completed=True,
            completed_at=now,
            watched_secs=watched_secs or 0,
            last_watched_at=now if watched_secs is not None else None,
        )
        try:
            async with db.begin_nested():
                db.add(progress)
        except IntegrityError:
            # Concurrent first completion won the insert
            progress = await db.get(LessonProgress, (user_id, lesson_id), populate_existing=True)
            if progress is None:
                raise
            return True
        return False

    already = progress.completed
    if not progress.completed:
        progress.completed = True
        progress.completed_at = now
    if watched_secs is not None:
        progress.watched_secs = max(progress.watched_secs or 0, watched_secs)
        progress.last_watched_at = now
    await db.flush()
    return already


async def complete_lesson(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    lesson_id: UUID,
    *,
    watched_secs: int | None = None,
) -> tuple[ProgressSummary, bool]:
    course = await get_course_by_slug(db, course_slug)
    await get_lesson_in_course(db, course.course_id, lesson_id)
    enrollment = await require_learning_enrollment(db, user_id, course.course_id)

    already_completed = await _mark_lesson_completed(db, user_id, lesson_id, watched_secs)
    summary = await recompute_progress(db, course.course_id, user_id, enrollment=enrollment)
    return summary, already_completed


async def get_course_progress(
    db: AsyncSession, user_id: UUID, course_slug: str,
) -> tuple[Enrollment, ProgressSummary]:
    course = await get_course_by_slug(db, course_slug)
    enrollment = await require_learning_enrollment(db, user_id, course.course_id)
    summary = await compute_progress(db, course.course_id, user_id)
    return enrollment, summary


# ---------------------------------------------------------------------------
# Counter sweep
# ---------------------------------------------------------------------------


def counter_lock_stmt() -> Select:
    return (
        select(Course.course_id, Course.enrollment_count)
        .order_by(Course.course_id)
        .with_for_update()
    )


async def reconcile_enrollment_counts(db: AsyncSession) -> list[tuple[UUID, int, int]]:
    """Reset every drifted ``enrollment_count`` to its true value.

    Returns (course_id, stored, actual) for each corrected course.

    Course rows are locked before enrollments are counted. A concurrent
    enrollment either commits first and is counted, or waits on its
    counter update and applies its delta to the corrected value.
    """
    stored_counts = dict((await db.execute(counter_lock_stmt())).all())

    live_stmt = (
        select(Enrollment.course_id, func.count())
        .where(Enrollment.status != EnrollmentStatus.CANCELLED)
        .group_by(Enrollment.course_id)
    )
    live_counts = dict((await db.execute(live_stmt)).all())

    corrected: list[tuple[UUID, int, int]] = []
    for course_id, stored in stored_counts.items():
        true_count = live_counts.get(course_id, 0)
        if stored == true_count:
            continue
        await db.execute(
            update(Course)
            .where(Course.course_id == course_id)
            .values(enrollment_count=true_count)
            .execution_options(synchronize_session=False)
        )
        logger.warning(
            "Enrollment counter drift corrected course=%s stored=%s actual=%s",
            course_id, stored, true_count,
        )
        corrected.append((course_id, stored, true_count))
    await db.flush()
    return corrected
