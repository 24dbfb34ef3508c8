from decimal import Decimal

import pytest
from sqlalchemy.dialects import postgresql

from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotPublishedError,
    InactiveAccountError,
    PaymentRequiredError,
)
from app.lms import service
from app.models.enums import EnrollmentStatus


@pytest.mark.asyncio
async def test_reconcile_creates_once(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(price=Decimal("30.00"))

    first = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    second = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)

    assert first.enrollment_id == second.enrollment_id
    assert first.status == EnrollmentStatus.ACTIVE
    assert first.progress_pct == 0
    assert course.enrollment_count == 1


@pytest.mark.asyncio
async def test_reconcile_refuses_inactive_account(db_session, make_user, make_course) -> None:
    user = await make_user(is_active=False)
    course, _ = await make_course()
    with pytest.raises(InactiveAccountError):
        await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    assert course.enrollment_count == 0


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_floored(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course()
    enrollment = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)

    await service.cancel_enrollment(db_session, enrollment)
    await service.cancel_enrollment(db_session, enrollment)
    assert enrollment.status == EnrollmentStatus.CANCELLED
    assert course.enrollment_count == 0


@pytest.mark.asyncio
async def test_decrement_never_goes_negative(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course()
    enrollment = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    course.enrollment_count = 0
    await db_session.flush()

    await service.cancel_enrollment(db_session, enrollment)
    assert course.enrollment_count == 0


@pytest.mark.asyncio
async def test_cancelled_enrollment_is_reactivated_with_progress(
    db_session, make_user, make_course,
) -> None:
    user = await make_user()
    course, lessons = await make_course(lesson_count=4)
    enrollment = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    await service.complete_lesson(db_session, user.user_id, course.slug, lessons[0].lesson_id)
    await service.cancel_enrollment(db_session, enrollment)

    again = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    assert again.enrollment_id == enrollment.enrollment_id
    assert again.status == EnrollmentStatus.ACTIVE
    assert again.progress_pct == 25
    assert course.enrollment_count == 1


@pytest.mark.asyncio
async def test_enroll_free_rules(db_session, make_user, make_course) -> None:
    user = await make_user()
    free, _ = await make_course(price=Decimal("0.00"))
    paid, _ = await make_course(price=Decimal("10.00"))
    discounted_to_zero, _ = await make_course(price=Decimal("10.00"), discount_price=Decimal("0.00"))
    draft, _ = await make_course(is_published=False)

    enrollment = await service.enroll_free(db_session, user.user_id, free.course_id)
    assert enrollment.payment_id is None

    with pytest.raises(AlreadyEnrolledError):
        await service.enroll_free(db_session, user.user_id, free.course_id)
    with pytest.raises(PaymentRequiredError):
        await service.enroll_free(db_session, user.user_id, paid.course_id)
    # A zero discount does not make a priced course free
    with pytest.raises(PaymentRequiredError):
        await service.enroll_free(db_session, user.user_id, discounted_to_zero.course_id)
    with pytest.raises(CourseNotPublishedError):
        await service.enroll_free(db_session, user.user_id, draft.course_id)


@pytest.mark.asyncio
async def test_counter_sweep_fixes_drift(db_session, make_user, make_course) -> None:
    users = [await make_user() for _ in range(3)]
    course, _ = await make_course()
    untouched, _ = await make_course()
    for user in users:
        await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    cancelled = await service.reconcile_enrollment(db_session, users[0].user_id, untouched.course_id)
    await service.cancel_enrollment(db_session, cancelled)

    course.enrollment_count = 7
    await db_session.flush()

    corrected = await service.reconcile_enrollment_counts(db_session)
    assert corrected == [(course.course_id, 7, 3)]

    await db_session.refresh(course)
    assert course.enrollment_count == 3
    assert await service.reconcile_enrollment_counts(db_session) == []


def test_counter_sweep_locks_course_rows() -> None:
    sql = str(service.counter_lock_stmt().compile(dialect=postgresql.dialect()))
    assert sql.rstrip().endswith("FOR UPDATE")
    assert "enrollment_count" in sql

