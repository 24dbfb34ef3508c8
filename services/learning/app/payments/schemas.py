"""Payment schemas."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class CreatePaymentIntentRequest(BaseModel):
    course_id: UUID
    # Price the client displayed; rejected if it disagrees with the server
    expected_price: Decimal | None = Field(None, gt=0)


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_id: UUID
    amount: Decimal
    currency: str
    existing: bool
