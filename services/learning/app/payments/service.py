"""Payment service: creates provider payment intents for paid courses.

The intent is the start of the paid-enrollment flow; the enrollment itself
is only created when the provider confirms payment via webhook.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotPublishedError,
    FreeCourseError,
    InactiveAccountError,
    PriceMismatchError,
    UserNotFoundError,
)
from app.lms.service import _get_enrollment, get_course_by_id
from app.models.enums import EnrollmentStatus
from app.models.user import AppUser
from app.payments import ledger
from app.payments.gateway import StripeGateway
from shared.database.types import utcnow

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = Decimal("0.01")
# Stripe caps statement_descriptor_suffix at 22 characters
DESCRIPTOR_SUFFIX_LEN = 22


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


def idempotency_key(user_id: UUID, course_id: UUID, now: float | None = None) -> str:
    """Stable for one minute so double clicks map to one intent."""
    bucket = int((now if now is not None else time.time()) // 60)
    return f"payment_{user_id}_{course_id}_{bucket}"


async def create_payment_intent(
    db: AsyncSession,
    gateway: StripeGateway,
    user_id: UUID,
    course_id: UUID,
    *,
    expected_price: Decimal | None = None,
    client_ip: str | None = None,
    user_agent: str | None = None,
) -> dict:
    user = await db.get(AppUser, user_id)
    if user is None:
        raise UserNotFoundError(str(user_id))
    if not user.is_active:
        logger.warning("SECURITY: payment attempt from inactive account user=%s ip=%s", user_id, client_ip)
        raise InactiveAccountError(str(user_id))

    course = await get_course_by_id(db, course_id)
    if not course.is_published:
        raise CourseNotPublishedError()

    actual_price = course.effective_price
    currency = course.currency.lower()
    if expected_price is not None and abs(expected_price - actual_price) > PRICE_TOLERANCE:
        logger.error(
            "SECURITY: price mismatch user=%s course=%s expected=%s actual=%s ip=%s",
            user_id, course_id, expected_price, actual_price, client_ip,
        )
        raise PriceMismatchError()
    if actual_price <= 0:
        raise FreeCourseError()

    enrollment = await _get_enrollment(db, user_id, course_id)
    if enrollment is not None and enrollment.status != EnrollmentStatus.CANCELLED:
        raise AlreadyEnrolledError()

    pending = await ledger.get_pending_payment(db, user_id, course_id)
    if pending is not None:
        existing = await gateway.retrieve_payment_intent(pending.provider_intent_id)
        if existing["status"] == "requires_payment_method":
            return {
                "client_secret": existing["client_secret"],
                "payment_id": pending.payment_id,
                "amount": pending.amount,
                "currency": pending.currency,
                "existing": True,
            }

    customer_id = user.stripe_customer_id
    if not customer_id:
        customer_id = await gateway.create_customer(
            email=user.email,
            name=user.full_name,
            metadata={
                "appUserId": str(user.user_id),
                "createdAt": utcnow().isoformat(),
                "ipAddress": client_ip or "unknown",
            },
        )
        user.stripe_customer_id = customer_id
        await db.flush()

    intent = await gateway.create_payment_intent(
        amount_minor=to_minor_units(actual_price),
        currency=currency,
        customer_id=customer_id,
        description=f"Course Purchase: {course.title}",
        statement_descriptor_suffix=course.title[:DESCRIPTOR_SUFFIX_LEN],
        metadata={
            "courseId": str(course.course_id),
            "appUserId": str(user.user_id),
            "courseTitle": course.title,
            "createdAt": utcnow().isoformat(),
            "ipAddress": client_ip or "unknown",
        },
        idempotency_key=idempotency_key(user_id, course_id),
    )

    payment = await ledger.record_pending(
        db,
        intent["id"],
        user_id=user_id,
        course_id=course_id,
        amount=actual_price,
        currency=currency,
        stripe_customer_id=customer_id,
        metadata={
            "courseTitle": course.title,
            "courseSlug": course.slug,
            "ipAddress": client_ip or "unknown",
            "userAgent": user_agent or "unknown",
        },
    )
    logger.info(
        "Payment intent created payment=%s user=%s course=%s amount=%s ip=%s",
        payment.payment_id, user_id, course_id, actual_price, client_ip,
    )
    return {
        "client_secret": intent["client_secret"],
        "payment_id": payment.payment_id,
        "amount": actual_price,
        "currency": currency,
        "existing": False,
    }
