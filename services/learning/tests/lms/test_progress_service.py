from datetime import timedelta

import pytest

from app.exceptions import LessonNotFoundError, NotEnrolledError
from app.lms import service
from app.models import LessonProgress
from app.models.enums import EnrollmentStatus
from shared.database.types import utcnow


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [
        (0, 0, 0),
        (0, 10, 0),
        (3, 10, 30),
        (1, 8, 13),
        (1, 3, 33),
        (2, 3, 67),
        (1, 200, 1),
        (10, 10, 100),
    ],
)
def test_completion_percentage_rounds_half_up(completed: int, total: int, expected: int) -> None:
    assert service.completion_percentage(completed, total) == expected


@pytest.mark.asyncio
async def test_progress_through_to_completion(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, lessons = await make_course(lesson_count=10, sections=3)
    enrollment = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)

    for lesson in lessons[:3]:
        summary, already = await service.complete_lesson(
            db_session, user.user_id, course.slug, lesson.lesson_id,
        )
        assert already is False
    assert summary.percentage == 30
    assert enrollment.progress_pct == 30
    assert enrollment.status == EnrollmentStatus.ACTIVE
    assert enrollment.completed_at is None

    for lesson in lessons[3:]:
        summary, _ = await service.complete_lesson(db_session, user.user_id, course.slug, lesson.lesson_id)
    assert summary.is_complete
    assert enrollment.progress_pct == 100
    assert enrollment.status == EnrollmentStatus.COMPLETED
    finished_at = enrollment.completed_at
    assert finished_at is not None

    summary, already = await service.complete_lesson(
        db_session, user.user_id, course.slug, lessons[0].lesson_id,
    )
    assert already is True
    assert summary.percentage == 100
    assert enrollment.completed_at == finished_at


@pytest.mark.asyncio
async def test_watched_seconds_only_grow(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, lessons = await make_course(lesson_count=2)
    await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    lesson_id = lessons[0].lesson_id

    await service.complete_lesson(db_session, user.user_id, course.slug, lesson_id, watched_secs=120)
    await service.complete_lesson(db_session, user.user_id, course.slug, lesson_id, watched_secs=60)

    progress = await db_session.get(LessonProgress, (user.user_id, lesson_id))
    assert progress.watched_secs == 120
    assert progress.completed is True


@pytest.mark.asyncio
async def test_empty_course_reports_zero(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course(lesson_count=0)
    await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    enrollment, summary = await service.get_course_progress(db_session, user.user_id, course.slug)
    assert summary.total == 0
    assert summary.percentage == 0
    assert not summary.is_complete
    assert enrollment.status == EnrollmentStatus.ACTIVE


@pytest.mark.asyncio
async def test_lesson_from_other_course_rejected(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, _ = await make_course()
    _, foreign_lessons = await make_course()
    await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    with pytest.raises(LessonNotFoundError):
        await service.complete_lesson(db_session, user.user_id, course.slug, foreign_lessons[0].lesson_id)


@pytest.mark.asyncio
async def test_completion_requires_live_enrollment(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, lessons = await make_course()
    with pytest.raises(NotEnrolledError):
        await service.complete_lesson(db_session, user.user_id, course.slug, lessons[0].lesson_id)

    enrollment = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    await service.cancel_enrollment(db_session, enrollment)
    with pytest.raises(NotEnrolledError):
        await service.complete_lesson(db_session, user.user_id, course.slug, lessons[0].lesson_id)


@pytest.mark.asyncio
async def test_expired_enrollment_cannot_progress(db_session, make_user, make_course) -> None:
    user = await make_user()
    course, lessons = await make_course()
    enrollment = await service.reconcile_enrollment(db_session, user.user_id, course.course_id)
    enrollment.expires_at = utcnow() - timedelta(days=1)
    await db_session.flush()

    with pytest.raises(NotEnrolledError):
        await service.complete_lesson(db_session, user.user_id, course.slug, lessons[0].lesson_id)
    _, active, expired = await service.check_enrollment(db_session, user.user_id, course.course_id)
    assert expired is True
    assert active is False
