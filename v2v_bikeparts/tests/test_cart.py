"""Cart reducer and CartStore."""
from __future__ import annotations

import asyncio
import json
import random

import pytest

from bikeparts.cart.models import AddItem, CartState, ClearCart, LineItem, LoadCart, RemoveItem, UpdateQuantity
from bikeparts.cart.reducer import reduce
from bikeparts.cart.store import CartStore


def _check_totals(state: CartState):
    assert state.totalItemCount == sum(li.quantity for li in state.items)
    assert state.totalAmount == sum(li.unitPrice * li.quantity for li in state.items)


# ---------- Reducer ----------

def test_add_same_product_merges_quantities(make_product):
    p = make_product("p1", 1500)
    state = reduce(CartState(), AddItem(product=p, quantity=2))
    state = reduce(state, AddItem(product=p, quantity=3))
    assert len(state.items) == 1
    assert state.items[0].quantity == 5
    assert state.totalItemCount == 5
    assert state.totalAmount == 7500


def test_add_new_product_appends_line_with_thumbnail(make_product):
    state = reduce(CartState(), AddItem(product=make_product("p1"), quantity=1))
    state = reduce(state, AddItem(product=make_product("p2", 800), quantity=2))
    assert [li.productId for li in state.items] == ["p1", "p2"]
    assert state.items[1].thumbnailImage == "https://img.example.com/p2.jpg"
    assert state.totalAmount == 1500 + 1600


def test_update_quantity_to_zero_removes_line(make_product):
    state = reduce(CartState(), AddItem(product=make_product("p1"), quantity=2))
    state = reduce(state, UpdateQuantity(productId="p1", quantity=0))
    assert state.items == []
    assert state.totalItemCount == 0
    assert state.totalAmount == 0


def test_update_quantity_negative_removes_line(make_product):
    state = reduce(CartState(), AddItem(product=make_product("p1"), quantity=2))
    state = reduce(state, UpdateQuantity(productId="p1", quantity=-3))
    assert state.items == []


def test_update_quantity_overwrites(make_product):
    state = reduce(CartState(), AddItem(product=make_product("p1"), quantity=2))
    state = reduce(state, UpdateQuantity(productId="p1", quantity=7))
    assert state.items[0].quantity == 7
    assert state.totalAmount == 7 * 1500


def test_remove_unknown_product_is_noop(make_product):
    state = reduce(CartState(), AddItem(product=make_product("p1"), quantity=1))
    assert reduce(state, RemoveItem(productId="nope")).items == state.items


def test_reducer_does_not_mutate_previous_state(make_product):
    before = reduce(CartState(), AddItem(product=make_product("p1"), quantity=1))
    reduce(before, AddItem(product=make_product("p1"), quantity=4))
    assert before.items[0].quantity == 1


def test_clear_and_load(make_product):
    state = reduce(CartState(), AddItem(product=make_product("p1"), quantity=2))
    assert reduce(state, ClearCart()) == CartState()

    line = LineItem(productId="x", vendorId="v", title="Mirror", unitPrice=250, quantity=4)
    loaded = reduce(CartState(), LoadCart(items=[line]))
    assert loaded.totalItemCount == 4
    assert loaded.totalAmount == 1000


def test_totals_always_match_items_for_random_sequences(make_product):
    rng = random.Random(7)
    products = [make_product(f"p{i}", price=rng.randint(1, 5000)) for i in range(5)]
    state = CartState()
    for _ in range(300):
        p = rng.choice(products)
        roll = rng.random()
        if roll < 0.5:
            state = reduce(state, AddItem(product=p, quantity=rng.randint(1, 4)))
        elif roll < 0.75:
            state = reduce(state, UpdateQuantity(productId=p.id, quantity=rng.randint(-1, 6)))
        else:
            state = reduce(state, RemoveItem(productId=p.id))
        _check_totals(state)
        assert len({li.productId for li in state.items}) == len(state.items)
        assert all(li.quantity >= 1 for li in state.items)


# ---------- CartStore ----------

def test_store_queries_and_persistence(cart, storage, make_product):
    async def scenario():
        await cart.add_item(make_product("p1"), 2)
        await cart.add_item(make_product("p2", 800))
        assert cart.get_item_quantity("p1") == 2
        assert cart.is_in_cart("p2")
        saved = json.loads(storage.data["cart:buyer1"])
        assert [x["productId"] for x in saved] == ["p1", "p2"]

        await cart.update_quantity("p1", 0)
        assert cart.get_item_quantity("p1") == 0
        assert not cart.is_in_cart("p1")
        assert cart.total_amount == 800

    asyncio.run(scenario())


def test_store_rehydrates_from_storage(storage, make_product):
    async def scenario():
        first = CartStore(storage, key="cart:buyer1")
        await first.add_item(make_product("p1"), 3)

        second = CartStore(storage, key="cart:buyer1")
        await second.load()
        assert second.get_item_quantity("p1") == 3
        assert second.total_amount == 4500

    asyncio.run(scenario())


def test_clear_cart_removes_stored_snapshot(cart, storage, make_product):
    async def scenario():
        await cart.add_item(make_product("p1"))
        await cart.clear_cart()
        assert cart.items == []
        assert "cart:buyer1" not in storage.data

    asyncio.run(scenario())


def test_corrupt_snapshot_leaves_cart_empty(storage):
    storage.data["cart:buyer1"] = '[{"productId": "p1"}]'
    store = CartStore(storage, key="cart:buyer1")
    asyncio.run(store.load())
    assert store.items == []


def test_storage_failure_does_not_break_cart(make_product):
    class BrokenStorage:
        async def get(self, key):
            raise OSError("disk gone")

        async def set(self, key, value):
            raise OSError("disk full")

        async def remove(self, key):
            raise OSError("disk gone")

    store = CartStore(BrokenStorage(), key="cart:buyer1")

    async def scenario():
        await store.load()
        await store.add_item(make_product("p1"), 2)
        assert store.total_amount == 3000
        await store.clear_cart()
        assert store.items == []

    asyncio.run(scenario())


def test_add_item_rejects_non_positive_quantity(cart, make_product):
    with pytest.raises(ValueError):
        asyncio.run(cart.add_item(make_product("p1"), 0))
