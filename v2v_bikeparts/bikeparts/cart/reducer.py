# bikeparts/cart/reducer.py
"""
Pure cart state transitions.

Totals are always recomputed from the full item list; nothing patches them
incrementally, so they cannot drift from the items.
"""
from __future__ import annotations
from typing import List

from .models import (
    AddItem,
    CartCommand,
    CartState,
    ClearCart,
    LineItem,
    LoadCart,
    RemoveItem,
    UpdateQuantity,
    line_from_product,
)


def calculate_totals(items: List[LineItem]) -> CartState:
    return CartState(
        items=items,
        totalItemCount=sum(li.quantity for li in items),
        totalAmount=sum(li.unitPrice * li.quantity for li in items),
    )


def _without(items: List[LineItem], product_id: str) -> List[LineItem]:
    return [li for li in items if li.productId != product_id]


def reduce(state: CartState, command: CartCommand) -> CartState:
    if isinstance(command, AddItem):
        pid = command.product.id
        if any(li.productId == pid for li in state.items):
            items = [
                li.model_copy(update={"quantity": li.quantity + command.quantity})
                if li.productId == pid else li
                for li in state.items
            ]
        else:
            items = [*state.items, line_from_product(command.product, command.quantity)]
        return calculate_totals(items)

    if isinstance(command, RemoveItem):
        return calculate_totals(_without(state.items, command.productId))

    if isinstance(command, UpdateQuantity):
        if command.quantity <= 0:
            return calculate_totals(_without(state.items, command.productId))
        items = [
            li.model_copy(update={"quantity": command.quantity})
            if li.productId == command.productId else li
            for li in state.items
        ]
        return calculate_totals(items)

    if isinstance(command, ClearCart):
        return CartState()

    if isinstance(command, LoadCart):
        return calculate_totals(list(command.items))

    raise TypeError(f"unknown cart command: {command!r}")
