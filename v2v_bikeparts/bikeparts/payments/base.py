# bikeparts/payments/base.py
from __future__ import annotations
from typing import Optional

from pydantic import BaseModel

CANCELLED_MESSAGE = "Payment cancelled by user"
LOAD_FAILED_MESSAGE = "Failed to load checkout"


class CustomerInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""


class CheckoutRequest(BaseModel):
    orderId: str
    amount: float           # major units (rupees)
    currency: str
    description: str
    customer: CustomerInfo
    buyerId: Optional[str] = None


class PaymentResult(BaseModel):
    success: bool
    paymentId: Optional[str] = None
    providerOrderId: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None
    cancelled: bool = False
    # a redirect checkout cannot see the outcome; the webhook confirms it later
    provisional: bool = False

    @classmethod
    def cancel(cls) -> "PaymentResult":
        return cls(success=False, cancelled=True, error=CANCELLED_MESSAGE)

    @classmethod
    def failure(cls, error: str) -> "PaymentResult":
        return cls(success=False, error=error or "Payment failed")


class PaymentGateway:
    """Turns one checkout request into exactly one PaymentResult; never raises."""

    async def open_checkout(self, request: CheckoutRequest) -> PaymentResult:
        raise NotImplementedError
