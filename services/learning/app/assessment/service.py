"""Assessment service: quiz attempt lifecycle.

A student has at most one in-progress attempt per quiz, enforced by a
partial unique index; starting again resumes it. Completed attempts count
against the quiz's attempt limit and are immutable.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AttemptAlreadyCompletedError,
    AttemptNotFoundError,
    MaxAttemptsReachedError,
    QuizNotFoundError,
)
from app.lms.service import get_course_by_slug, require_learning_enrollment
from app.models.enums import QuizAttemptStatus
from app.models.quiz import Quiz
from app.models.quiz_attempt import QuizAttempt
from shared.database.types import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


async def get_course_quiz(db: AsyncSession, course_slug: str, quiz_id: UUID) -> Quiz:
    course = await get_course_by_slug(db, course_slug)
    quiz = await db.get(Quiz, quiz_id)
    if quiz is None or quiz.course_id != course.course_id:
        raise QuizNotFoundError(str(quiz_id))
    return quiz


def max_attempts_for(quiz: Quiz, default: int = DEFAULT_MAX_ATTEMPTS) -> int:
    return quiz.max_attempts if quiz.max_attempts is not None else default


async def _count_completed(db: AsyncSession, quiz_id: UUID, user_id: UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(QuizAttempt)
        .where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user_id,
            QuizAttempt.status == QuizAttemptStatus.COMPLETED,
        )
    )
    return await db.scalar(stmt) or 0


async def _get_in_progress(db: AsyncSession, quiz_id: UUID, user_id: UUID) -> QuizAttempt | None:
    stmt = select(QuizAttempt).where(
        QuizAttempt.quiz_id == quiz_id,
        QuizAttempt.user_id == user_id,
        QuizAttempt.status == QuizAttemptStatus.IN_PROGRESS,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def start_attempt(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    quiz_id: UUID,
    *,
    default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> tuple[QuizAttempt, bool]:
    """Return (attempt, resumed)."""
    quiz = await get_course_quiz(db, course_slug, quiz_id)
    await require_learning_enrollment(db, user_id, quiz.course_id)

    limit = max_attempts_for(quiz, default_max_attempts)
    used = await _count_completed(db, quiz_id, user_id)
    if used >= limit:
        raise MaxAttemptsReachedError(limit)

    existing = await _get_in_progress(db, quiz_id, user_id)
    if existing is not None:
        return existing, True

    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        status=QuizAttemptStatus.IN_PROGRESS,
        started_at=utcnow(),
    )
    try:
        async with db.begin_nested():
            db.add(attempt)
    except IntegrityError:
        # A concurrent start created the in-progress attempt first
        winner = await _get_in_progress(db, quiz_id, user_id)
        if winner is None:
            raise
        logger.info("Concurrent quiz start resolved to attempt=%s", winner.attempt_id)
        return winner, True

    logger.info("Quiz attempt started quiz=%s user=%s attempt=%s", quiz_id, user_id, attempt.attempt_id)
    return attempt, False


async def list_attempts(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    quiz_id: UUID,
    *,
    default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> dict:
    quiz = await get_course_quiz(db, course_slug, quiz_id)
    await require_learning_enrollment(db, user_id, quiz.course_id)

    stmt = (
        select(QuizAttempt)
        .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.started_at)
    )
    result = await db.execute(stmt)
    attempts = list(result.scalars().all())

    limit = max_attempts_for(quiz, default_max_attempts)
    completed = [a for a in attempts if a.status == QuizAttemptStatus.COMPLETED]
    used = len(completed)
    remaining = max(0, limit - used)
    return {
        "quiz_id": quiz.quiz_id,
        "attempts": attempts,
        "max_attempts": limit,
        "used": used,
        "remaining": remaining,
        "best_score": max((a.score for a in completed if a.score is not None), default=None),
        "passed": any(a.passed for a in completed),
        "can_attempt": remaining > 0,
    }


async def submit_attempt(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    quiz_id: UUID,
    attempt_id: UUID,
    *,
    score: int,
    default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> QuizAttempt:
    """Close an in-progress attempt with the grader's score.

    The completed count is re-read here: an attempt started against a stale
    count must not push the student past the limit.
    """
    quiz = await get_course_quiz(db, course_slug, quiz_id)
    await require_learning_enrollment(db, user_id, quiz.course_id)

    attempt = await db.get(QuizAttempt, attempt_id)
    if attempt is None or attempt.quiz_id != quiz_id or attempt.user_id != user_id:
        raise AttemptNotFoundError(str(attempt_id))
    if attempt.status == QuizAttemptStatus.COMPLETED:
        raise AttemptAlreadyCompletedError()

    limit = max_attempts_for(quiz, default_max_attempts)
    if await _count_completed(db, quiz_id, user_id) >= limit:
        logger.warning(
            "Refusing submit over attempt limit attempt=%s user=%s limit=%s",
            attempt_id, user_id, limit,
        )
        raise MaxAttemptsReachedError(limit)

    attempt.status = QuizAttemptStatus.COMPLETED
    attempt.score = score
    attempt.passed = score >= quiz.passing_score
    attempt.completed_at = utcnow()
    await db.flush()
    logger.info(
        "Quiz attempt submitted attempt=%s score=%s passed=%s",
        attempt.attempt_id, score, attempt.passed,
    )
    return attempt
