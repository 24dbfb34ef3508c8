from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.admin.schemas import CounterCorrection, ReconcileCountersResponse
from app.lms import service as lms_service

logger = logging.getLogger(__name__)


async def reconcile_counters(db: AsyncSession, admin_id: UUID) -> ReconcileCountersResponse:
    corrected = await lms_service.reconcile_enrollment_counts(db)
    logger.info("Counter sweep by admin=%s corrected=%d", admin_id, len(corrected))
    return ReconcileCountersResponse(
        corrected=[
            CounterCorrection(course_id=course_id, stored=stored, actual=actual)
            for course_id, stored, actual in corrected
        ],
        corrected_count=len(corrected),
    )
