# bikeparts/checkout/models.py
from __future__ import annotations

import itertools
import time
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..auth.session import Address
from ..cart.models import LineItem

PaymentMethod = Literal["online", "cod"]


class CheckoutState(str, Enum):
    IDLE = "idle"
    ADDRESS_SELECTED = "address_selected"
    PAYMENT_METHOD_SELECTED = "payment_method_selected"
    AWAITING_PAYMENT_PROVIDER = "awaiting_payment_provider"
    ORDER_PERSISTED = "order_persisted"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CANCELLED = "payment_cancelled"


class OrderDraft(BaseModel):
    model_config = ConfigDict(frozen=True)

    orderId: str
    buyerId: str
    items: Tuple[LineItem, ...]
    subtotal: float
    shippingCost: float
    tax: int
    discount: float = 0
    totalAmount: float
    paymentMethod: PaymentMethod
    shippingAddress: Address
    currency: str = "INR"


OutcomeStatus = Literal[
    "order_persisted",
    "validation_error",
    "payment_failed",
    "payment_cancelled",
    "persistence_failed",
    "busy",
]


class CheckoutOutcome(BaseModel):
    status: OutcomeStatus
    message: str = ""
    orderId: Optional[str] = None
    paymentId: Optional[str] = None
    provisional: bool = False
    draft: Optional[OrderDraft] = None

    @property
    def ok(self) -> bool:
        return self.status == "order_persisted"


_sequence = itertools.count()


def generate_order_id(now_ms: Optional[int] = None, seq: Optional[int] = None) -> str:
    """
    "ORD" + last 6 digits of the epoch-millisecond clock + a 3-digit sequence.
    The sequence wraps at 1000, so ids are always 12 characters.

    Unique enough within one process run; the order document key is what
    actually prevents duplicates.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if seq is None:
        seq = next(_sequence)
    return f"ORD{str(now_ms)[-6:]}{seq % 1000:03d}"
