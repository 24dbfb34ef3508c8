"""Assessment controller: maps domain exceptions to HTTP responses."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment import service
from app.assessment.schemas import (
    AttemptListResponse,
    AttemptResponse,
    StartAttemptResponse,
    SubmitAttemptRequest,
)
from app.config import Settings
from app.exceptions import (
    AttemptAlreadyCompletedError,
    AttemptNotFoundError,
    CourseNotFoundError,
    MaxAttemptsReachedError,
    NotEnrolledError,
    QuizNotFoundError,
)

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, (CourseNotFoundError, QuizNotFoundError, AttemptNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, NotEnrolledError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course.")
    if isinstance(exc, AttemptAlreadyCompletedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt already submitted.")
    logger.exception("Unexpected assessment error", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def start_attempt(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    quiz_id: UUID,
    settings: Settings,
) -> StartAttemptResponse | JSONResponse:
    try:
        attempt, resumed = await service.start_attempt(
            db, user_id, course_slug, quiz_id,
            default_max_attempts=settings.default_quiz_max_attempts,
        )
        return StartAttemptResponse(
            attempt=AttemptResponse.model_validate(attempt),
            resumed=resumed,
        )
    except MaxAttemptsReachedError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def list_attempts(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    quiz_id: UUID,
    settings: Settings,
) -> AttemptListResponse:
    try:
        data = await service.list_attempts(
            db, user_id, course_slug, quiz_id,
            default_max_attempts=settings.default_quiz_max_attempts,
        )
        return AttemptListResponse(
            **{**data, "attempts": [AttemptResponse.model_validate(a) for a in data["attempts"]]}
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def submit_attempt(
    db: AsyncSession,
    user_id: UUID,
    course_slug: str,
    quiz_id: UUID,
    attempt_id: UUID,
    body: SubmitAttemptRequest,
    settings: Settings,
) -> AttemptResponse | JSONResponse:
    try:
        attempt = await service.submit_attempt(
            db, user_id, course_slug, quiz_id, attempt_id, score=body.score,
            default_max_attempts=settings.default_quiz_max_attempts,
        )
        return AttemptResponse.model_validate(attempt)
    except MaxAttemptsReachedError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
