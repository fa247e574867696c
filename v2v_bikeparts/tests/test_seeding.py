import asyncio
import random

import pytest

from bikeparts.cart.models import LineItem
from bikeparts.pricing import price_items
from bikeparts.seeding import build_orders, seed_orders
from bikeparts.services.documents import ORDERS, WriteOp, chunked


def test_built_orders_are_priced_like_checkout(make_product):
    products = [make_product("p1", 1500), make_product("p2", 800),
                make_product("p3", 2500, vendor="v2")]
    docs = build_orders(["b1", "b2"], products, 40, random.Random(7), now_ms=1718000000000)

    assert len({d["id"] for d in docs}) == 40
    for doc in docs:
        assert len({li["vendorId"] for li in doc["items"]}) == 1
        assert doc["vendorId"] == doc["items"][0]["vendorId"]
        assert doc["buyerId"] in ("b1", "b2")
        lines = [LineItem.model_validate(li) for li in doc["items"]]
        amounts = price_items(lines, discount=doc["discount"])
        assert doc["totalAmount"] == amounts.totalAmount
        assert doc["tax"] == amounts.tax
        if doc["paymentDetails"]["method"] == "cod":
            assert "providerOrderId" not in doc["paymentDetails"]


def test_order_ids_stay_unique_past_a_thousand(make_product):
    docs = build_orders(["b1"], [make_product()], 2500, random.Random(3), now_ms=1718000000000)
    ids = [d["id"] for d in docs]
    assert len(set(ids)) == 2500
    assert {len(i) for i in ids} == {12}


def test_build_orders_needs_buyers_and_products(make_product):
    with pytest.raises(ValueError):
        build_orders([], [make_product()], 1)
    with pytest.raises(ValueError):
        build_orders(["b1"], [], 1)


def test_chunked_respects_batch_limit():
    ops = [WriteOp(type="delete", collection=ORDERS, doc_id=str(i)) for i in range(1203)]
    assert [len(c) for c in chunked(ops)] == [500, 500, 203]


def test_seed_orders_writes_in_batches(store):
    written = asyncio.run(seed_orders(store, 620, random.Random(1)))
    assert written == 620
    assert store.batches == [500, 120]
    assert len(store.collections[ORDERS]) == 620
    assert all(o["buyerId"] == "buyer1" for o in store.collections[ORDERS].values())
