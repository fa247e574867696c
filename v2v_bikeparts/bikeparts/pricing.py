# bikeparts/pricing.py
"""
Order amount calculation.

Tax is rounded half-up to a whole currency unit (the same result as
JavaScript's Math.round), so totals match amounts already recorded by the
mobile app and the seed data.
"""
from __future__ import annotations

import math
from typing import Iterable

from pydantic import BaseModel

from .cart.models import LineItem

FREE_SHIPPING_THRESHOLD = 2000
FLAT_SHIPPING_FEE = 100
TAX_RATE = 0.18


class OrderAmounts(BaseModel):
    subtotal: float
    shippingCost: float
    tax: int
    discount: float = 0
    totalAmount: float


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def subtotal(items: Iterable[LineItem]) -> float:
    return sum(li.unitPrice * li.quantity for li in items)


def shipping_cost(amount: float,
                  threshold: float = FREE_SHIPPING_THRESHOLD,
                  flat_fee: float = FLAT_SHIPPING_FEE) -> float:
    # strictly greater: an order of exactly the threshold still pays shipping
    return 0 if amount > threshold else flat_fee


def tax(amount: float, rate: float = TAX_RATE) -> int:
    return round_half_up(amount * rate)


def total(sub: float, shipping: float, tax_amount: float, discount: float = 0) -> float:
    return sub + shipping + tax_amount - discount


def price_items(items: Iterable[LineItem],
                discount: float = 0,
                threshold: float = FREE_SHIPPING_THRESHOLD,
                flat_fee: float = FLAT_SHIPPING_FEE,
                rate: float = TAX_RATE) -> OrderAmounts:
    sub = subtotal(items)
    ship = shipping_cost(sub, threshold, flat_fee)
    t = tax(sub, rate)
    return OrderAmounts(
        subtotal=sub,
        shippingCost=ship,
        tax=t,
        discount=discount,
        totalAmount=total(sub, ship, t, discount),
    )


def to_minor_units(amount: float) -> int:
    """Rupees to paise (the unit payment providers charge in)."""
    return round_half_up(amount * 100)
