"""Payments router: checkout entry point for paid courses."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, get_stripe_gateway
from app.payments import controller
from app.payments.gateway import StripeGateway
from app.payments.schemas import CreatePaymentIntentRequest, PaymentIntentResponse
from app.rate_limit import limiter

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/intents",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_200_OK,
    summary="Create a payment intent for a paid course",
    description="Validates the account, course and price, then creates (or "
    "reuses) a Stripe PaymentIntent and a pending ledger record. Enrollment "
    "happens when the provider confirms payment.",
)
@limiter.limit("3/minute")
async def create_payment_intent(
    request: Request,
    body: CreatePaymentIntentRequest,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> PaymentIntentResponse:
    return await controller.create_payment_intent(
        db,
        gateway,
        user_id,
        body,
        client_ip=getattr(request.state, "client_ip", None),
        user_agent=request.headers.get("user-agent"),
    )
