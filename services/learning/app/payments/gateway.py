"""Thin async wrapper over the blocking Stripe SDK.

SDK calls run in the default executor so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any

import stripe

from app.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)


class StripeGateway:
    def __init__(self, api_key: str):
        self._api_key = api_key

    async def _call(self, fn, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, functools.partial(fn, *args, api_key=self._api_key, **kwargs),
            )
        except stripe.StripeError as exc:
            logger.error("Stripe API call %s failed: %s", getattr(fn, "__qualname__", fn), exc)
            raise PaymentProviderError(str(exc)) from exc

    async def create_customer(self, *, email: str, name: str | None, metadata: dict[str, str]) -> str:
        customer = await self._call(
            stripe.Customer.create, email=email, name=name, metadata=metadata,
        )
        return customer["id"]

    async def create_payment_intent(
        self,
        *,
        amount_minor: int,
        currency: str,
        customer_id: str,
        description: str,
        statement_descriptor_suffix: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> dict[str, Any]:
        intent = await self._call(
            stripe.PaymentIntent.create,
            amount=amount_minor,
            currency=currency,
            customer=customer_id,
            description=description,
            metadata=metadata,
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            payment_method_options={"card": {"request_three_d_secure": "automatic"}},
            statement_descriptor_suffix=statement_descriptor_suffix,
            idempotency_key=idempotency_key,
        )
        return {"id": intent["id"], "client_secret": intent["client_secret"], "status": intent["status"]}

    async def retrieve_payment_intent(self, intent_id: str) -> dict[str, Any]:
        intent = await self._call(stripe.PaymentIntent.retrieve, intent_id)
        return {"id": intent["id"], "client_secret": intent["client_secret"], "status": intent["status"]}
