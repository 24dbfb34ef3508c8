"""Admin router: operational maintenance endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.admin import controller
from app.admin.schemas import ReconcileCountersResponse
from app.database import get_db
from app.dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post(
    "/reconcile-counters",
    response_model=ReconcileCountersResponse,
    summary="Recompute course enrollment counters",
    description="Resets every course's enrollment_count to the number of "
    "non-cancelled enrollments. Returns the courses that had drifted.",
)
async def reconcile_counters(
    db: AsyncSession = Depends(get_db),
    admin_id: UUID = Depends(require_admin),
) -> ReconcileCountersResponse:
    return await controller.reconcile_counters(db, admin_id)
