# bikeparts/checkout/orchestrator.py
"""
Checkout state machine for one buyer's cart.

    idle -> address_selected -> payment_method_selected
         -> awaiting_payment_provider -> order_persisted
                                      -> (failed | cancelled) -> payment_method_selected

Validation runs before any provider call. The cart is locked while an order
is placed from it and cleared only after the order document is written.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..auth.session import Address, Session
from ..cart.store import CartStore
from ..payments.base import CheckoutRequest, CustomerInfo, PaymentGateway, PaymentResult
from ..pricing import FLAT_SHIPPING_FEE, FREE_SHIPPING_THRESHOLD, TAX_RATE, OrderAmounts, price_items
from ..services.orders import OrderRepository, build_order_document
from .models import (
    CheckoutOutcome,
    CheckoutState,
    OrderDraft,
    PaymentMethod,
    generate_order_id,
)

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("online", "cod")


class CheckoutOrchestrator:
    def __init__(self,
                 cart: CartStore,
                 session: Session,
                 gateway: PaymentGateway,
                 orders: OrderRepository,
                 *,
                 currency: str = "INR",
                 merchant_name: str = "V2V Bike Parts",
                 free_shipping_threshold: float = FREE_SHIPPING_THRESHOLD,
                 flat_shipping_fee: float = FLAT_SHIPPING_FEE,
                 tax_rate: float = TAX_RATE,
                 write_attempts: int = 3,
                 write_backoff: float = 0.5,
                 id_factory: Callable[[], str] = generate_order_id,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.cart = cart
        self.session = session
        self.gateway = gateway
        self.orders = orders
        self.currency = currency
        self.merchant_name = merchant_name
        self.free_shipping_threshold = free_shipping_threshold
        self.flat_shipping_fee = flat_shipping_fee
        self.tax_rate = tax_rate
        self.write_attempts = max(1, write_attempts)
        self.write_backoff = write_backoff
        self.id_factory = id_factory
        self.sleep = sleep
        self.reset()

    @classmethod
    def from_settings(cls, cart, session, gateway, orders, settings) -> "CheckoutOrchestrator":
        return cls(
            cart, session, gateway, orders,
            currency=settings.currency,
            merchant_name=settings.merchant_name,
            free_shipping_threshold=settings.free_shipping_threshold,
            flat_shipping_fee=settings.flat_shipping_fee,
            tax_rate=settings.tax_rate,
            write_attempts=settings.order_write_attempts,
            write_backoff=settings.order_write_backoff,
        )

    def reset(self) -> None:
        self.state = CheckoutState.IDLE
        self.address_index: Optional[int] = None
        self.payment_method: Optional[PaymentMethod] = None
        self.busy = False
        self.pending_order_id: Optional[str] = None
        self.last_outcome: Optional[CheckoutOutcome] = None

    # ---- selections ----------------------------------------------------------
    def _addresses(self):
        user = self.session.user
        return user.addresses if user is not None else []

    def _ensure_idle(self) -> None:
        if self.busy:
            raise RuntimeError("a checkout is already in progress")

    def select_address(self, index: int = 0) -> Address:
        self._ensure_idle()
        addresses = self._addresses()
        if not 0 <= index < len(addresses):
            raise ValueError("Select a valid shipping address")
        self.address_index = index
        if self.payment_method is None:
            self.state = CheckoutState.ADDRESS_SELECTED
        return addresses[index]

    def select_payment_method(self, method: str) -> None:
        self._ensure_idle()
        if method not in PAYMENT_METHODS:
            raise ValueError(f"payment method must be one of {PAYMENT_METHODS}")
        if self.address_index is None:
            # the first stored address is the default selection
            self.select_address(0)
        self.payment_method = method  # type: ignore[assignment]
        self.state = CheckoutState.PAYMENT_METHOD_SELECTED

    @property
    def shipping_address(self) -> Optional[Address]:
        addresses = self._addresses()
        index = 0 if self.address_index is None else self.address_index
        if 0 <= index < len(addresses):
            return addresses[index]
        return None

    # ---- pricing -------------------------------------------------------------
    def quote(self, discount: float = 0) -> OrderAmounts:
        return price_items(
            self.cart.items,
            discount=discount,
            threshold=self.free_shipping_threshold,
            flat_fee=self.flat_shipping_fee,
            rate=self.tax_rate,
        )

    def build_draft(self, discount: float = 0) -> OrderDraft:
        user = self.session.user
        address = self.shipping_address
        if user is None or address is None or self.payment_method is None:
            raise ValueError("checkout is not ready")
        amounts = self.quote(discount)
        return OrderDraft(
            orderId=self.id_factory(),
            buyerId=user.id,
            items=tuple(self.cart.snapshot()),
            subtotal=amounts.subtotal,
            shippingCost=amounts.shippingCost,
            tax=amounts.tax,
            discount=amounts.discount,
            totalAmount=amounts.totalAmount,
            paymentMethod=self.payment_method,
            shippingAddress=address,
            currency=self.currency,
        )

    # ---- submit --------------------------------------------------------------
    def _validate(self) -> Optional[str]:
        if not self.cart.items:
            return "Your cart is empty"
        user = self.session.user
        if user is None or not user.is_buyer:
            return "Please login as a buyer to place orders"
        if not self._addresses():
            return "Add a shipping address before placing an order"
        if self.shipping_address is None:
            return "Select a valid shipping address"
        if self.payment_method is None:
            return "Choose a payment method"
        return None

    def _finish(self, outcome: CheckoutOutcome) -> CheckoutOutcome:
        self.last_outcome = outcome
        return outcome

    async def place_order(self, discount: float = 0) -> CheckoutOutcome:
        if self.busy:
            return CheckoutOutcome(status="busy", message="Your order is already being placed")

        error = self._validate()
        if error:
            return self._finish(CheckoutOutcome(status="validation_error", message=error))

        self.busy = True
        # the draft is a snapshot of the cart; nothing may change under it
        self.cart.locked = True
        try:
            draft = self.build_draft(discount)
            if draft.paymentMethod == "cod":
                return self._finish(await self._persist(draft, None))

            self.state = CheckoutState.AWAITING_PAYMENT_PROVIDER
            self.pending_order_id = draft.orderId
            result = await self.gateway.open_checkout(self._checkout_request(draft))

            if not result.success:
                return self._finish(self._rollback(draft, result))
            return self._finish(await self._persist(draft, result))
        finally:
            self.cart.locked = False
            self.busy = False
            self.pending_order_id = None

    def _checkout_request(self, draft: OrderDraft) -> CheckoutRequest:
        user = self.session.user
        count = len(draft.items)
        return CheckoutRequest(
            orderId=draft.orderId,
            amount=draft.totalAmount,
            currency=draft.currency,
            description=f"Order for {count} item(s) from {self.merchant_name}",
            buyerId=draft.buyerId,
            customer=CustomerInfo(
                name=user.display_name if user else "",
                email=user.email if user else "",
                phone=user.phone if user else "",
            ),
        )

    def _rollback(self, draft: OrderDraft, result: PaymentResult) -> CheckoutOutcome:
        if result.cancelled:
            status, message = "payment_cancelled", "Payment cancelled. Your cart has been kept."
        else:
            status, message = "payment_failed", f"Payment failed: {result.error or 'unknown error'}"
        logger.info("order %s not placed: %s", draft.orderId, result.error)
        # PAYMENT_FAILED / PAYMENT_CANCELLED fall straight back so the buyer can retry
        self.state = CheckoutState.PAYMENT_METHOD_SELECTED
        return CheckoutOutcome(status=status, message=message, orderId=draft.orderId, draft=draft)

    async def _persist(self, draft: OrderDraft, payment: Optional[PaymentResult]) -> CheckoutOutcome:
        doc = build_order_document(draft, payment)
        payment_id = payment.paymentId if payment else None

        for attempt in range(1, self.write_attempts + 1):
            try:
                await self.orders.save(doc)
                break
            except Exception:
                if attempt == self.write_attempts:
                    logger.exception(
                        "order %s NOT recorded after %d attempts (payment %s)",
                        draft.orderId, attempt, payment_id,
                    )
                    self.state = CheckoutState.PAYMENT_METHOD_SELECTED
                    return CheckoutOutcome(
                        status="persistence_failed",
                        message="We could not save your order. Please contact support"
                                + (f" with payment reference {payment_id}." if payment_id else "."),
                        orderId=draft.orderId,
                        paymentId=payment_id,
                        draft=draft,
                    )
                delay = self.write_backoff * (2 ** (attempt - 1))
                logger.warning("writing order %s failed (attempt %d), retrying in %.2fs",
                               draft.orderId, attempt, delay)
                await self.sleep(delay)

        self.cart.locked = False
        await self.cart.clear_cart()
        self.state = CheckoutState.ORDER_PERSISTED
        logger.info("order %s placed (%s, total %s)", draft.orderId, draft.paymentMethod, draft.totalAmount)
        return CheckoutOutcome(
            status="order_persisted",
            message="Order placed",
            orderId=draft.orderId,
            paymentId=payment_id,
            provisional=bool(payment and payment.provisional),
            draft=draft,
        )
