"""Payment ledger: the only writer of ``payments`` rows.

Every function is keyed by the provider payment-intent id and is safe to
call repeatedly with the same arguments. Status only moves forward along
``PAYMENT_TRANSITIONS``.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PAYMENT_TRANSITIONS, PaymentStatus
from app.models.payment import PaymentRecord
from shared.database.types import utcnow

logger = logging.getLogger(__name__)


async def get_payment_by_intent(db: AsyncSession, intent_id: str) -> PaymentRecord | None:
    stmt = select(PaymentRecord).where(PaymentRecord.provider_intent_id == intent_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_pending_payment(
    db: AsyncSession, user_id: UUID, course_id: UUID,
) -> PaymentRecord | None:
    stmt = (
        select(PaymentRecord)
        .where(
            PaymentRecord.user_id == user_id,
            PaymentRecord.course_id == course_id,
            PaymentRecord.status == PaymentStatus.PENDING,
        )
        .order_by(PaymentRecord.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[current]


def _merge_metadata(payment: PaymentRecord, extra: dict | None) -> None:
    if not extra:
        return
    # Reassign so the JSON column is flagged dirty
    payment.provider_metadata = {**(payment.provider_metadata or {}), **extra}


async def record_pending(
    db: AsyncSession,
    intent_id: str,
    *,
    user_id: UUID,
    course_id: UUID,
    amount: Decimal,
    currency: str,
    stripe_customer_id: str | None = None,
    metadata: dict | None = None,
) -> PaymentRecord:
    existing = await get_payment_by_intent(db, intent_id)
    if existing is not None:
        return existing

    payment = PaymentRecord(
        provider_intent_id=intent_id,
        user_id=user_id,
        course_id=course_id,
        amount=amount,
        currency=currency,
        status=PaymentStatus.PENDING,
        stripe_customer_id=stripe_customer_id,
        provider_metadata=metadata or {},
    )
    db.add(payment)
    await db.flush()
    logger.info("Pending payment recorded intent=%s payment=%s", intent_id, payment.payment_id)
    return payment


async def record_success(
    db: AsyncSession,
    intent_id: str,
    *,
    payer_id: UUID,
    course_id: UUID,
    amount: Decimal,
    currency: str,
    stripe_customer_id: str | None = None,
    metadata: dict | None = None,
) -> PaymentRecord:
    """Insert a succeeded record, or move an existing one forward to succeeded.

    Callers must check the returned record's status: a refunded intent stays
    refunded and must not produce a new enrollment.
    """
    existing = await get_payment_by_intent(db, intent_id)
    if existing is not None:
        if existing.status == PaymentStatus.SUCCEEDED:
            logger.info("Payment already recorded intent=%s payment=%s", intent_id, existing.payment_id)
            return existing
        if not can_transition(existing.status, PaymentStatus.SUCCEEDED):
            logger.warning(
                "Ignoring success for intent=%s in status=%s",
                intent_id, existing.status.value,
            )
            return existing
        existing.status = PaymentStatus.SUCCEEDED
        if stripe_customer_id and not existing.stripe_customer_id:
            existing.stripe_customer_id = stripe_customer_id
        _merge_metadata(existing, metadata)
        await db.flush()
        logger.info("Payment succeeded intent=%s payment=%s", intent_id, existing.payment_id)
        return existing

    payment = PaymentRecord(
        provider_intent_id=intent_id,
        user_id=payer_id,
        course_id=course_id,
        amount=amount,
        currency=currency,
        status=PaymentStatus.SUCCEEDED,
        stripe_customer_id=stripe_customer_id,
        provider_metadata=metadata or {},
    )
    db.add(payment)
    await db.flush()
    logger.info("Payment recorded intent=%s payment=%s", intent_id, payment.payment_id)
    return payment


async def record_failure(
    db: AsyncSession,
    intent_id: str,
    reason_code: str | None,
    reason_message: str | None,
) -> PaymentRecord | None:
    payment = await get_payment_by_intent(db, intent_id)
    if payment is None:
        # Out-of-order delivery: failure for an intent we never saw
        logger.warning("Payment failure for unknown intent=%s", intent_id)
        return None
    if not can_transition(payment.status, PaymentStatus.FAILED):
        logger.warning(
            "Ignoring failure for intent=%s in status=%s",
            intent_id, payment.status.value,
        )
        return payment

    payment.status = PaymentStatus.FAILED
    _merge_metadata(payment, {
        "failure_code": reason_code,
        "failure_message": reason_message,
        "failed_at": utcnow().isoformat(),
    })
    await db.flush()
    logger.info("Payment failure logged intent=%s reason=%s", intent_id, reason_message)
    return payment


async def record_refund(db: AsyncSession, intent_id: str) -> PaymentRecord | None:
    """Move a succeeded record to refunded.

    Returns the record only when this call performed the transition, so the
    enrollment cancellation runs once per refund however often it is delivered.
    """
    payment = await get_payment_by_intent(db, intent_id)
    if payment is None:
        logger.warning("Refund for unknown intent=%s", intent_id)
        return None
    if payment.status == PaymentStatus.REFUNDED:
        logger.info("Refund already recorded intent=%s", intent_id)
        return None
    if not can_transition(payment.status, PaymentStatus.REFUNDED):
        logger.warning(
            "Ignoring refund for intent=%s in status=%s",
            intent_id, payment.status.value,
        )
        return None

    payment.status = PaymentStatus.REFUNDED
    _merge_metadata(payment, {"refunded_at": utcnow().isoformat()})
    await db.flush()
    logger.info("Payment refunded intent=%s payment=%s", intent_id, payment.payment_id)
    return payment


async def record_dispute(
    db: AsyncSession,
    intent_id: str,
    *,
    dispute_id: str,
    reason: str | None,
    dispute_status: str | None,
) -> PaymentRecord | None:
    """Attach dispute details for audit. Status is left alone."""
    payment = await get_payment_by_intent(db, intent_id)
    if payment is None:
        logger.warning("Dispute %s for unknown intent=%s", dispute_id, intent_id)
        return None
    _merge_metadata(payment, {
        "dispute_id": dispute_id,
        "dispute_reason": reason,
        "dispute_status": dispute_status,
        "disputed_at": utcnow().isoformat(),
    })
    await db.flush()
    return payment
