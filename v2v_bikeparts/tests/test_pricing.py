"""Order amount calculation."""
from __future__ import annotations

from bikeparts.cart.models import LineItem
from bikeparts.pricing import price_items, round_half_up, shipping_cost, subtotal, tax, to_minor_units, total


def _line(price, qty, pid="p"):
    return LineItem(productId=pid, vendorId="v1", title="Part", unitPrice=price, quantity=qty)


def test_shipping_is_tiered_on_subtotal():
    assert shipping_cost(1800) == 100
    assert shipping_cost(2500) == 0
    # strictly above the threshold ships free
    assert shipping_cost(2000) == 100
    assert shipping_cost(2000.01) == 0


def test_tax_is_rounded_to_whole_units():
    assert tax(1000) == 180
    assert tax(1500) == 270
    # half rounds up, not to even
    assert tax(5, rate=0.5) == 3
    assert tax(9, rate=0.5) == 5
    assert tax(1) == 0


def test_round_half_up_matches_math_round():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(-2.5) == -2
    assert round_half_up(0.49) == 0


def test_total_subtracts_discount():
    assert total(1000, 100, 180) == 1280
    assert total(1000, 100, 180, discount=80) == 1200


def test_price_items_end_to_end():
    amounts = price_items([_line(1500, 1)])
    assert amounts.subtotal == 1500
    assert amounts.shippingCost == 100
    assert amounts.tax == 270
    assert amounts.discount == 0
    assert amounts.totalAmount == 1870


def test_price_items_tax_half_rounds_up():
    amounts = price_items([_line(25, 1)])
    # 25 * 0.18 = 4.5
    assert amounts.tax == 5
    assert amounts.shippingCost == 100
    assert amounts.totalAmount == 130


def test_price_items_free_shipping_over_threshold():
    amounts = price_items([_line(1200, 1, "a"), _line(700, 2, "b")])
    assert subtotal([_line(1200, 1, "a"), _line(700, 2, "b")]) == 2600
    assert amounts.shippingCost == 0
    assert amounts.tax == 468
    assert amounts.totalAmount == 2600 + 468


def test_price_items_uses_configured_rules():
    amounts = price_items([_line(500, 1)], threshold=400, flat_fee=60, rate=0.05)
    assert amounts.shippingCost == 0
    assert amounts.tax == 25


def test_minor_units():
    assert to_minor_units(1870) == 187000
    assert to_minor_units(19.99) == 1999
