"""Webhook event dispatch: verified provider events → ledger + enrollment.

Runs inside the caller's transaction. Handlers either complete or raise,
so a failure leaves no partial ledger/enrollment state behind.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InactiveAccountError
from app.lms import service as lms_service
from app.models.enums import PaymentStatus
from app.models.payment import PaymentRecord
from app.payments import ledger
from app.webhooks import events
from app.webhooks.events import (
    Charge,
    CheckoutSession,
    Dispute,
    PaymentIntent,
    ProviderEvent,
    minor_to_major,
)
from shared.database.types import utcnow

logger = logging.getLogger(__name__)

# Metadata keys attached to checkout sessions and payment intents at creation
META_COURSE_ID = "courseId"
META_USER_ID = "appUserId"
META_LEGACY_USER_ID = "userId"


def _metadata_ids(metadata: dict[str, str]) -> tuple[UUID, UUID] | None:
    course_id = metadata.get(META_COURSE_ID)
    user_id = metadata.get(META_USER_ID) or metadata.get(META_LEGACY_USER_ID)
    if not course_id or not user_id:
        return None
    try:
        return UUID(user_id), UUID(course_id)
    except ValueError:
        return None


async def _enroll_for_payment(db: AsyncSession, payment: PaymentRecord) -> None:
    if payment.status != PaymentStatus.SUCCEEDED:
        return
    if payment.course_id is None:
        logger.warning("Succeeded payment=%s has no course", payment.payment_id)
        return
    try:
        await lms_service.reconcile_enrollment(
            db, payment.user_id, payment.course_id, payment_id=payment.payment_id,
        )
    except InactiveAccountError:
        # Money is recorded; access is not granted. Acknowledge so the
        # provider does not retry forever.
        logger.error(
            "SECURITY: payment=%s succeeded for inactive account user=%s; no enrollment created",
            payment.payment_id, payment.user_id,
        )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_checkout_completed(db: AsyncSession, session: CheckoutSession) -> None:
    if session.payment_status != "paid":
        logger.warning("Checkout completed but not paid session=%s", session.id)
        return

    ids = _metadata_ids(session.metadata)
    if ids is None:
        logger.error("SECURITY: missing metadata in checkout session=%s", session.id)
        return
    if not session.payment_intent:
        logger.error("Checkout session=%s carries no payment intent", session.id)
        return
    user_id, course_id = ids

    payment = await ledger.record_success(
        db,
        session.payment_intent,
        payer_id=user_id,
        course_id=course_id,
        amount=minor_to_major(session.amount_total),
        currency=session.currency or "usd",
        stripe_customer_id=session.customer,
        metadata={
            **session.metadata,
            "checkout_session_id": session.id,
            "processed_at": utcnow().isoformat(),
        },
    )
    await _enroll_for_payment(db, payment)


async def handle_payment_succeeded(db: AsyncSession, intent: PaymentIntent) -> None:
    payment = await ledger.get_payment_by_intent(db, intent.id)
    if payment is None:
        ids = _metadata_ids(intent.metadata)
        if ids is None:
            logger.warning("Payment intent succeeded but no payment record found intent=%s", intent.id)
            return
        user_id, course_id = ids
    else:
        user_id, course_id = payment.user_id, payment.course_id

    payment = await ledger.record_success(
        db,
        intent.id,
        payer_id=user_id,
        course_id=course_id,
        amount=minor_to_major(intent.amount),
        currency=intent.currency or "usd",
        stripe_customer_id=intent.customer,
        metadata={"succeeded_at": utcnow().isoformat()},
    )
    await _enroll_for_payment(db, payment)


async def handle_payment_failed(db: AsyncSession, intent: PaymentIntent) -> None:
    error = intent.last_payment_error
    await ledger.record_failure(
        db,
        intent.id,
        error.code if error else None,
        error.message if error else None,
    )


async def handle_payment_canceled(db: AsyncSession, intent: PaymentIntent) -> None:
    await ledger.record_failure(db, intent.id, "canceled", intent.cancellation_reason or "canceled")


async def handle_charge_refunded(db: AsyncSession, charge: Charge) -> None:
    if not charge.payment_intent:
        logger.warning("Refunded charge=%s has no payment intent", charge.id)
        return
    payment = await ledger.record_refund(db, charge.payment_intent)
    if payment is None:
        return
    await lms_service.cancel_enrollment_for_payment(db, payment)


async def handle_dispute_created(db: AsyncSession, dispute: Dispute) -> None:
    logger.warning(
        "Dispute created dispute=%s intent=%s amount=%s reason=%s",
        dispute.id, dispute.payment_intent, minor_to_major(dispute.amount), dispute.reason,
    )
    if not dispute.payment_intent:
        return
    await ledger.record_dispute(
        db,
        dispute.payment_intent,
        dispute_id=dispute.id,
        reason=dispute.reason,
        dispute_status=dispute.status,
    )


_HANDLERS: dict[str, Callable[[AsyncSession, object], Awaitable[None]]] = {
    events.CHECKOUT_SESSION_COMPLETED: handle_checkout_completed,
    events.PAYMENT_INTENT_SUCCEEDED: handle_payment_succeeded,
    events.PAYMENT_INTENT_FAILED: handle_payment_failed,
    events.PAYMENT_INTENT_CANCELED: handle_payment_canceled,
    events.CHARGE_REFUNDED: handle_charge_refunded,
    events.CHARGE_DISPUTE_CREATED: handle_dispute_created,
}


async def dispatch_event(db: AsyncSession, event: ProviderEvent) -> bool:
    """Apply one verified event. Returns False for event types we ignore."""
    handler = _HANDLERS.get(event.type)
    if handler is None:
        logger.info("Unhandled event type=%s id=%s", event.type, event.id)
        return False
    logger.info("Processing event type=%s id=%s", event.type, event.id)
    await handler(db, event.payload())
    return True
