# bikeparts/payments/stripe_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from ..pricing import to_minor_units

logger = logging.getLogger(__name__)


class PaymentsNotConfigured(RuntimeError):
    pass


class StripeClient:
    """
    Server-side calls to Stripe. Amounts are taken in major units (rupees) and
    sent in paise. Every call runs in the threadpool since the SDK blocks.
    """

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str] = None):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def _key(self) -> str:
        if not self.secret_key:
            raise PaymentsNotConfigured("STRIPE_SECRET_KEY is not set")
        return self.secret_key

    async def create_order(self, amount: float, currency: str, receipt: str,
                           notes: Optional[Dict[str, str]] = None,
                           description: Optional[str] = None) -> Dict[str, Any]:
        """Create the provider-side order (a PaymentIntent) for `receipt`."""
        intent = await run_in_threadpool(
            stripe.PaymentIntent.create,
            api_key=self._key(),
            amount=to_minor_units(amount),
            currency=currency.lower(),
            description=description,
            metadata={"orderId": receipt, **(notes or {})},
            automatic_payment_methods={"enabled": True},
        )
        return {
            "id": intent["id"],
            "clientSecret": intent["client_secret"],
            "amount": intent["amount"],
            "currency": intent["currency"],
        }

    async def create_checkout_session(self, order_id: str, amount: float, currency: str,
                                      description: str, success_url: str, cancel_url: str,
                                      customer_email: Optional[str] = None) -> Dict[str, Any]:
        """Hosted checkout page carrying the whole order as one line."""
        params: Dict[str, Any] = dict(
            mode="payment",
            success_url=success_url + f"?orderId={order_id}",
            cancel_url=cancel_url + f"?orderId={order_id}&cancelled=1",
            line_items=[{
                "quantity": 1,
                "price_data": {
                    "currency": currency.lower(),
                    "unit_amount": to_minor_units(amount),
                    "product_data": {"name": description},
                },
            }],
            client_reference_id=order_id,
            payment_intent_data={"metadata": {"orderId": order_id}},
            metadata={"orderId": order_id},
        )
        if customer_email:
            params["customer_email"] = customer_email
        session = await run_in_threadpool(
            stripe.checkout.Session.create, api_key=self._key(), **params
        )
        return {"id": session["id"], "url": session["url"]}

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        intent = await run_in_threadpool(
            stripe.PaymentIntent.retrieve, payment_id, api_key=self._key()
        )
        return {
            "id": intent["id"],
            "status": intent["status"],
            "amount": intent["amount"],
            "currency": intent["currency"],
            "orderId": (intent.get("metadata") or {}).get("orderId"),
        }

    async def refund_payment(self, payment_id: str, amount: Optional[float] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"payment_intent": payment_id}
        if amount:
            params["amount"] = to_minor_units(amount)
        refund = await run_in_threadpool(stripe.Refund.create, api_key=self._key(), **params)
        logger.info("refund %s for %s: %s", refund["id"], payment_id, refund["status"])
        return {"id": refund["id"], "status": refund["status"], "amount": refund["amount"]}

    async def verify_payment(self, order_id: str, payment_id: str) -> bool:
        """
        Advisory check that the intent belongs to the order and has succeeded.
        The webhook is what actually marks an order paid.
        """
        try:
            payment = await self.fetch_payment(payment_id)
        except (stripe.StripeError, PaymentsNotConfigured):
            logger.warning("could not verify payment %s", payment_id, exc_info=True)
            return False
        return payment["orderId"] == order_id and payment["status"] == "succeeded"

    def construct_event(self, raw_body: bytes, signature: Optional[str]):
        if not self.webhook_secret:
            raise PaymentsNotConfigured("STRIPE_WEBHOOK_SECRET is not set")
        return stripe.Webhook.construct_event(
            payload=raw_body, sig_header=signature, secret=self.webhook_secret
        )
