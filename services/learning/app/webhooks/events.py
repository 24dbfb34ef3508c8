"""Typed views of the Stripe webhook events this service acts on.

Known event types get a pydantic model for their ``data.object`` payload;
anything else stays an opaque dict so new provider events never break
verification.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
PAYMENT_INTENT_CANCELED = "payment_intent.canceled"
CHARGE_REFUNDED = "charge.refunded"
CHARGE_DISPUTE_CREATED = "charge.dispute.created"


def minor_to_major(amount_minor: int | None) -> Decimal:
    """Stripe amounts are integer cents."""
    return (Decimal(amount_minor or 0) / 100).quantize(Decimal("0.01"))


# ---------------------------------------------------------------------------
# Payload objects
# ---------------------------------------------------------------------------


class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    metadata: dict[str, str] = Field(default_factory=dict)


class CheckoutSession(_StripeObject):
    payment_intent: str | None = None
    payment_status: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    customer: str | None = None


class PaymentError(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str | None = None
    message: str | None = None


class PaymentIntent(_StripeObject):
    amount: int | None = None
    currency: str | None = None
    customer: str | None = None
    status: str | None = None
    last_payment_error: PaymentError | None = None
    cancellation_reason: str | None = None


class Charge(_StripeObject):
    payment_intent: str | None = None
    amount: int | None = None
    amount_refunded: int | None = None
    refunded: bool = False


class Dispute(_StripeObject):
    payment_intent: str | None = None
    amount: int | None = None
    reason: str | None = None
    status: str | None = None


_PAYLOAD_MODELS: dict[str, type[_StripeObject]] = {
    CHECKOUT_SESSION_COMPLETED: CheckoutSession,
    PAYMENT_INTENT_SUCCEEDED: PaymentIntent,
    PAYMENT_INTENT_FAILED: PaymentIntent,
    PAYMENT_INTENT_CANCELED: PaymentIntent,
    CHARGE_REFUNDED: Charge,
    CHARGE_DISPUTE_CREATED: Dispute,
}


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class EventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any]


class ProviderEvent(BaseModel):
    """Verified Stripe event envelope."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    created: int = Field(description="Unix seconds when the provider created the event.")
    livemode: bool = False
    data: EventData

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created, tz=timezone.utc)

    def age_secs(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds()

    def payload(self) -> _StripeObject | dict[str, Any]:
        """The typed ``data.object`` for known event types, else the raw dict."""
        model = _PAYLOAD_MODELS.get(self.type)
        if model is None:
            return self.data.object
        return model.model_validate(self.data.object)
