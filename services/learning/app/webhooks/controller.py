"""Webhook controller: verify, deduplicate, dispatch, acknowledge.

Response contract with the provider: 2xx means "do not retry". Anything
that failed after verification answers 500 so the provider redelivers.
"""

from __future__ import annotations

import logging

from fastapi import status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import (
    InvalidPayloadError,
    InvalidSignatureError,
    MissingSignatureError,
    StaleEventError,
    WebhookNotConfiguredError,
)
from app.webhooks import service
from app.webhooks.replay_guard import ReplayGuard
from app.webhooks.verifier import verify_event

logger = logging.getLogger(__name__)

_VERIFICATION_ERRORS: dict[type[Exception], tuple[int, str]] = {
    MissingSignatureError: (status.HTTP_400_BAD_REQUEST, "No signature provided"),
    InvalidSignatureError: (status.HTTP_400_BAD_REQUEST, "Invalid signature"),
    InvalidPayloadError: (status.HTTP_400_BAD_REQUEST, "Invalid payload"),
    StaleEventError: (status.HTTP_400_BAD_REQUEST, "Event too old"),
    WebhookNotConfiguredError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook secret not configured"),
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def receive_stripe_event(
    db: AsyncSession,
    *,
    payload: bytes,
    signature: str | None,
    source_ip: str | None,
    settings: Settings,
    guard: ReplayGuard,
) -> JSONResponse:
    try:
        event = verify_event(
            payload,
            signature,
            settings.stripe_webhook_secret,
            source_ip=source_ip,
            tolerance_secs=settings.webhook_tolerance_secs,
            max_age_secs=settings.webhook_max_event_age_secs,
        )
    except tuple(_VERIFICATION_ERRORS) as exc:
        return _error(*_VERIFICATION_ERRORS[type(exc)])

    if not await guard.should_process(event.id):
        return JSONResponse(content={"received": True, "duplicate": True})

    try:
        await service.dispatch_event(db, event)
        # Commit before acknowledging: a 200 must mean the effects are durable
        await db.commit()
    except Exception:
        logger.exception("Webhook processing failed type=%s id=%s", event.type, event.id)
        await db.rollback()
        await guard.forget(event.id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed")

    return JSONResponse(content={"received": True})
