"""Assessment router: quiz attempt endpoints nested under a course."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment import controller
from app.assessment.schemas import (
    AttemptListResponse,
    AttemptResponse,
    StartAttemptResponse,
    SubmitAttemptRequest,
)
from app.config import Settings
from app.database import get_db
from app.dependencies import get_current_user, get_settings

router = APIRouter(prefix="/courses/{course_slug}/quizzes", tags=["Assessments"])


@router.get(
    "/{quiz_id}/attempts",
    response_model=AttemptListResponse,
    summary="List my attempts on a quiz",
)
async def list_attempts(
    course_slug: str,
    quiz_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> AttemptListResponse:
    return await controller.list_attempts(db, user_id, course_slug, quiz_id, settings)


@router.post(
    "/{quiz_id}/attempts",
    response_model=StartAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start or resume a quiz attempt",
    description="Returns the in-progress attempt if one exists. "
    "Returns 400 once the attempt limit is used up.",
)
async def start_attempt(
    course_slug: str,
    quiz_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    return await controller.start_attempt(db, user_id, course_slug, quiz_id, settings)


@router.post(
    "/{quiz_id}/attempts/{attempt_id}/submit",
    response_model=AttemptResponse,
    summary="Submit a graded attempt",
    description="Returns 400 if the attempt limit was used up while this attempt was open.",
)
async def submit_attempt(
    course_slug: str,
    quiz_id: UUID,
    attempt_id: UUID,
    body: SubmitAttemptRequest,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    return await controller.submit_attempt(db, user_id, course_slug, quiz_id, attempt_id, body, settings)
