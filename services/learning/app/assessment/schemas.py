"""Assessment domain schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import QuizAttemptStatus


class SubmitAttemptRequest(BaseModel):
    score: int = Field(ge=0, le=100, description="Percentage score assigned by the grader.")


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempt_id: UUID
    quiz_id: UUID
    user_id: UUID
    status: QuizAttemptStatus
    score: int | None
    passed: bool
    started_at: datetime
    completed_at: datetime | None


class StartAttemptResponse(BaseModel):
    attempt: AttemptResponse
    resumed: bool


class AttemptListResponse(BaseModel):
    quiz_id: UUID
    attempts: list[AttemptResponse]
    max_attempts: int
    used: int
    remaining: int
    best_score: int | None
    passed: bool
    can_attempt: bool
