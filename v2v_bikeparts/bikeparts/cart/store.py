# bikeparts/cart/store.py
from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError

from ..services.local_storage import LocalStorage, discard, load_json, save_json
from .models import (
    AddItem,
    CartCommand,
    CartState,
    ClearCart,
    LineItem,
    LoadCart,
    Product,
    RemoveItem,
    UpdateQuantity,
    find_line,
)
from .reducer import reduce

logger = logging.getLogger(__name__)


class CartLocked(RuntimeError):
    pass


class CartStore:
    """
    One buyer's cart.

    Mutations go through `dispatch`, then the items are written to local
    storage. A failed write is logged and the in-memory cart stays authoritative.

    While `locked` (an order is being placed from it) mutations raise CartLocked.
    """

    def __init__(self, storage: LocalStorage, key: str = "cart"):
        self.storage = storage
        self.key = key
        self.state = CartState()
        self.locked = False

    # ---- reads ---------------------------------------------------------------
    @property
    def items(self):
        return self.state.items

    @property
    def total_item_count(self) -> int:
        return self.state.totalItemCount

    @property
    def total_amount(self) -> float:
        return self.state.totalAmount

    def get_item_quantity(self, product_id: str) -> int:
        line = find_line(self.state, product_id)
        return line.quantity if line else 0

    def is_in_cart(self, product_id: str) -> bool:
        return find_line(self.state, product_id) is not None

    # ---- lifecycle -----------------------------------------------------------
    async def load(self) -> CartState:
        raw = await load_json(self.storage, self.key)
        if not raw:
            return self.state
        try:
            items = [LineItem.model_validate(x) for x in raw]
        except (TypeError, ValidationError):
            logger.warning("discarding unreadable cart snapshot %r", self.key, exc_info=True)
            return self.state
        self.dispatch(LoadCart(items=items))
        return self.state

    def dispatch(self, command: CartCommand) -> CartState:
        self.state = reduce(self.state, command)
        return self.state

    async def _save(self) -> None:
        await save_json(
            self.storage, self.key, [li.model_dump() for li in self.state.items]
        )

    # ---- mutations -----------------------------------------------------------
    def _ensure_unlocked(self) -> None:
        if self.locked:
            raise CartLocked("the cart cannot change while an order is being placed")

    async def add_item(self, product: Product, quantity: int = 1) -> CartState:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        self._ensure_unlocked()
        self.dispatch(AddItem(product=product, quantity=quantity))
        await self._save()
        return self.state

    async def remove_item(self, product_id: str) -> CartState:
        self._ensure_unlocked()
        self.dispatch(RemoveItem(productId=product_id))
        await self._save()
        return self.state

    async def update_quantity(self, product_id: str, quantity: int) -> CartState:
        self._ensure_unlocked()
        self.dispatch(UpdateQuantity(productId=product_id, quantity=quantity))
        await self._save()
        return self.state

    async def clear_cart(self) -> CartState:
        self._ensure_unlocked()
        self.dispatch(ClearCart())
        await discard(self.storage, self.key)
        return self.state

    def snapshot(self) -> List[LineItem]:
        """Copy of the current lines, safe to hand to an order."""
        return [li.model_copy() for li in self.state.items]
