"""Inbound webhook verification: signature, shape, freshness.

Pure validation, no side effects beyond audit logging. Nothing downstream
ever sees an unverified payload.
"""

from __future__ import annotations

import logging
from datetime import datetime

import stripe
from pydantic import ValidationError

from app.exceptions import (
    InvalidPayloadError,
    InvalidSignatureError,
    MissingSignatureError,
    StaleEventError,
    WebhookNotConfiguredError,
)
from app.webhooks.events import ProviderEvent
from shared.database.types import utcnow

logger = logging.getLogger(__name__)


def verify_event(
    payload: bytes,
    signature: str | None,
    secret: str,
    *,
    source_ip: str | None = None,
    tolerance_secs: int = 300,
    max_age_secs: int = 300,
    now: datetime | None = None,
) -> ProviderEvent:
    if not signature:
        logger.error("SECURITY: webhook without signature from ip=%s", source_ip)
        raise MissingSignatureError()

    if not secret:
        logger.critical("Stripe webhook secret is not configured")
        raise WebhookNotConfiguredError()

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.error("SECURITY: undecodable webhook body from ip=%s", source_ip)
        raise InvalidSignatureError() from exc

    try:
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance_secs)
    except stripe.SignatureVerificationError as exc:
        logger.error(
            "SECURITY: invalid webhook signature from ip=%s: %s", source_ip, exc
        )
        raise InvalidSignatureError() from exc

    try:
        event = ProviderEvent.model_validate_json(body)
        # Known event types must carry a well-formed data.object
        event.payload()
    except ValidationError as exc:
        logger.error(
            "SECURITY: signed webhook with malformed body from ip=%s: %s",
            source_ip, exc.error_count(),
        )
        raise InvalidPayloadError() from exc

    age = event.age_secs(now or utcnow())
    if age > max_age_secs:
        logger.warning(
            "SECURITY: stale webhook rejected event_id=%s age=%.0fs ip=%s",
            event.id, age, source_ip,
        )
        raise StaleEventError(event.id, age)

    logger.info("Verified webhook event type=%s id=%s", event.type, event.id)
    return event
