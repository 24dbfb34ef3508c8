from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class CounterCorrection(BaseModel):
    course_id: UUID
    stored: int
    actual: int


class ReconcileCountersResponse(BaseModel):
    corrected: list[CounterCorrection]
    corrected_count: int
