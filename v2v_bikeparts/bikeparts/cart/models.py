# bikeparts/cart/models.py
from __future__ import annotations
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class Product(BaseModel):
    """The catalog fields a cart needs from a `products` document."""
    id: str
    vendorId: str
    title: str
    price: float = Field(..., ge=0)
    images: List[str] = []


class LineItem(BaseModel):
    productId: str
    vendorId: str
    title: str
    unitPrice: float
    quantity: int = Field(..., ge=1)
    thumbnailImage: str = ""


class CartState(BaseModel):
    items: List[LineItem] = []
    totalItemCount: int = 0
    totalAmount: float = 0


# ---- Commands ----------------------------------------------------------------
class AddItem(BaseModel):
    type: Literal["add_item"] = "add_item"
    product: Product
    quantity: int = 1


class RemoveItem(BaseModel):
    type: Literal["remove_item"] = "remove_item"
    productId: str


class UpdateQuantity(BaseModel):
    type: Literal["update_quantity"] = "update_quantity"
    productId: str
    quantity: int


class ClearCart(BaseModel):
    type: Literal["clear_cart"] = "clear_cart"


class LoadCart(BaseModel):
    type: Literal["load_cart"] = "load_cart"
    items: List[LineItem]


CartCommand = Annotated[
    Union[AddItem, RemoveItem, UpdateQuantity, ClearCart, LoadCart],
    Field(discriminator="type"),
]


def line_from_product(product: Product, quantity: int) -> LineItem:
    return LineItem(
        productId=product.id,
        vendorId=product.vendorId,
        title=product.title,
        unitPrice=product.price,
        quantity=quantity,
        thumbnailImage=product.images[0] if product.images else "",
    )


def find_line(state: CartState, product_id: str) -> Optional[LineItem]:
    return next((li for li in state.items if li.productId == product_id), None)
