# bikeparts/payments/gateways.py
"""
The two checkout strategies.

ModalCheckoutGateway is for browser-like hosts: the page renders Stripe's
payment element from the options we hand it and reports back how it ended.
A completed modal is still provisional until the webhook confirms the intent.
RedirectCheckoutGateway is for embedded/native hosts: a hosted checkout URL is
opened in an external browser and only a user cancel can be observed there.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional, Protocol

import stripe
from pydantic import BaseModel

from ..pricing import to_minor_units
from .base import (
    LOAD_FAILED_MESSAGE,
    CheckoutRequest,
    PaymentGateway,
    PaymentResult,
)
from .stripe_client import PaymentsNotConfigured, StripeClient

logger = logging.getLogger(__name__)

THEME_COLOR = "#2563eb"


class ModalOutcome(BaseModel):
    kind: Literal["completed", "dismissed", "failed"]
    paymentId: Optional[str] = None
    providerOrderId: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None


class BrowserResult(BaseModel):
    # "cancel" is the only outcome the external browser reports reliably
    type: Literal["cancel", "dismiss", "opened", "success"]


class ModalLauncher(Protocol):
    async def open_modal(self, order_id: str, options: Dict[str, Any],
                         owner: Optional[str] = None) -> ModalOutcome: ...


class BrowserLauncher(Protocol):
    async def open_url(self, order_id: str, url: str,
                       owner: Optional[str] = None) -> BrowserResult: ...


class ModalCheckoutGateway(PaymentGateway):
    def __init__(self, client: StripeClient, launcher: ModalLauncher,
                 publishable_key: Optional[str], merchant_name: str):
        self.client = client
        self.launcher = launcher
        self.publishable_key = publishable_key
        self.merchant_name = merchant_name

    async def open_checkout(self, request: CheckoutRequest) -> PaymentResult:
        try:
            provider_order = await self.client.create_order(
                amount=request.amount,
                currency=request.currency,
                receipt=request.orderId,
                description=request.description,
            )
        except (stripe.StripeError, PaymentsNotConfigured) as e:
            logger.warning("checkout setup failed for %s: %s", request.orderId, e)
            return PaymentResult.failure(f"{LOAD_FAILED_MESSAGE}: {e}")

        options = {
            "key": self.publishable_key,
            "clientSecret": provider_order["clientSecret"],
            "providerOrderId": provider_order["id"],
            "amount": to_minor_units(request.amount),
            "currency": request.currency,
            "name": self.merchant_name,
            "description": request.description,
            "orderId": request.orderId,
            "prefill": request.customer.model_dump(),
            "theme": {"color": THEME_COLOR},
        }
        try:
            outcome = await self.launcher.open_modal(request.orderId, options, owner=request.buyerId)
        except Exception as e:
            logger.exception("checkout modal for %s failed", request.orderId)
            return PaymentResult.failure(str(e))

        if outcome.kind == "dismissed":
            return PaymentResult.cancel()
        if outcome.kind == "failed":
            return PaymentResult.failure(outcome.error or "Payment failed")

        # the intent we created is the payment; ids reported by the page are not trusted
        intent_id = provider_order["id"]
        if outcome.paymentId and outcome.paymentId != intent_id:
            logger.warning("checkout %s reported payment %s, expected %s",
                           request.orderId, outcome.paymentId, intent_id)
        if not await self.client.verify_payment(request.orderId, intent_id):
            logger.info("payment %s for %s not confirmed yet", intent_id, request.orderId)
        # the webhook marks the order paid
        return PaymentResult(
            success=True,
            paymentId=intent_id,
            providerOrderId=intent_id,
            signature=outcome.signature,
            provisional=True,
        )


class RedirectCheckoutGateway(PaymentGateway):
    def __init__(self, client: StripeClient, launcher: BrowserLauncher,
                 success_url: str, cancel_url: str):
        self.client = client
        self.launcher = launcher
        self.success_url = success_url
        self.cancel_url = cancel_url

    async def open_checkout(self, request: CheckoutRequest) -> PaymentResult:
        try:
            session = await self.client.create_checkout_session(
                order_id=request.orderId,
                amount=request.amount,
                currency=request.currency,
                description=request.description,
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                customer_email=request.customer.email or None,
            )
        except (stripe.StripeError, PaymentsNotConfigured) as e:
            logger.warning("checkout session failed for %s: %s", request.orderId, e)
            return PaymentResult.failure(f"{LOAD_FAILED_MESSAGE}: {e}")

        try:
            result = await self.launcher.open_url(request.orderId, session["url"], owner=request.buyerId)
        except Exception as e:
            logger.exception("checkout browser for %s failed", request.orderId)
            return PaymentResult.failure(str(e))

        if result.type == "cancel":
            return PaymentResult.cancel()
        return PaymentResult(
            success=True,
            providerOrderId=session["id"],
            provisional=True,
        )


def build_gateway(settings, client: StripeClient, launcher) -> PaymentGateway:
    """Pick the strategy for this host once, from CHECKOUT_MODE."""
    if settings.checkout_mode == "redirect":
        return RedirectCheckoutGateway(
            client, launcher,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        )
    return ModalCheckoutGateway(
        client, launcher,
        publishable_key=settings.stripe_publishable_key,
        merchant_name=settings.merchant_name,
    )
