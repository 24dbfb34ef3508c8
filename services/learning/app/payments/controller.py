from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    CourseNotPublishedError,
    FreeCourseError,
    InactiveAccountError,
    PaymentProviderError,
    PriceMismatchError,
    UserNotFoundError,
)
from app.payments import service
from app.payments.gateway import StripeGateway
from app.payments.schemas import CreatePaymentIntentRequest, PaymentIntentResponse

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, (CourseNotFoundError, UserNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InactiveAccountError, PriceMismatchError)):
        # Security refusals share one vague message
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Payment not allowed.")
    if isinstance(exc, AlreadyEnrolledError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already enrolled in this course.")
    if isinstance(exc, FreeCourseError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This course is free. No payment required.")
    if isinstance(exc, CourseNotPublishedError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course is not available for purchase.")
    if isinstance(exc, PaymentProviderError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider unavailable.")
    logger.exception("Unexpected payment error", exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Payment creation failed. Please try again.",
    )


async def create_payment_intent(
    db: AsyncSession,
    gateway: StripeGateway,
    user_id: UUID,
    body: CreatePaymentIntentRequest,
    *,
    client_ip: str | None,
    user_agent: str | None,
) -> PaymentIntentResponse:
    try:
        result = await service.create_payment_intent(
            db,
            gateway,
            user_id,
            body.course_id,
            expected_price=body.expected_price,
            client_ip=client_ip,
            user_agent=user_agent,
        )
        return PaymentIntentResponse(**result)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
