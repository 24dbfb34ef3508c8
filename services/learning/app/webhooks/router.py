"""Webhook router: provider callbacks. Unauthenticated; trust comes from the signature."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_replay_guard, get_settings
from app.webhooks import controller
from app.webhooks.replay_guard import ReplayGuard

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/stripe",
    summary="Stripe webhook receiver",
    description="Verifies the stripe-signature header against the raw body, "
    "drops replays, and applies payment events to the ledger and enrollments.",
    include_in_schema=False,
)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    guard: ReplayGuard = Depends(get_replay_guard),
) -> JSONResponse:
    # Raw bytes: re-serialized JSON would not match the signature
    payload = await request.body()
    return await controller.receive_stripe_event(
        db,
        payload=payload,
        signature=request.headers.get("stripe-signature"),
        source_ip=getattr(request.state, "client_ip", None),
        settings=settings,
        guard=guard,
    )
