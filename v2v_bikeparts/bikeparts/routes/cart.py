# bikeparts/routes/cart.py
from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from ..cart.models import CartState, Product
from ..cart.store import CartLocked
from ..deps import AppServices, BuyerContext, get_buyer, get_services
from ..services.documents import PRODUCTS

router = APIRouter(prefix="/cart", tags=["cart"])


class AddItemIn(BaseModel):
    productId: str
    quantity: int = Field(1, ge=1)


class QuantityIn(BaseModel):
    # 0 or less removes the line
    quantity: int


def _locked(e: CartLocked) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=CartState)
async def get_cart(ctx: BuyerContext = Depends(get_buyer)):
    return ctx.cart.state


@router.post("/items", response_model=CartState)
async def add_item(body: AddItemIn,
                   ctx: BuyerContext = Depends(get_buyer),
                   services: AppServices = Depends(get_services)):
    doc = await services.store.get(PRODUCTS, body.productId)
    if not doc or not doc.get("isActive", True):
        raise HTTPException(status_code=404, detail="product not found")
    try:
        product = Product.model_validate(doc)
    except ValidationError:
        raise HTTPException(status_code=400, detail="product cannot be sold")
    try:
        return await ctx.cart.add_item(product, body.quantity)
    except CartLocked as e:
        raise _locked(e)


@router.patch("/items/{product_id}", response_model=CartState)
async def update_quantity(product_id: str, body: QuantityIn,
                          ctx: BuyerContext = Depends(get_buyer)):
    if not ctx.cart.is_in_cart(product_id):
        raise HTTPException(status_code=404, detail="item not in cart")
    try:
        return await ctx.cart.update_quantity(product_id, body.quantity)
    except CartLocked as e:
        raise _locked(e)


@router.delete("/items/{product_id}", response_model=CartState)
async def remove_item(product_id: str, ctx: BuyerContext = Depends(get_buyer)):
    try:
        return await ctx.cart.remove_item(product_id)
    except CartLocked as e:
        raise _locked(e)


@router.delete("", response_model=CartState)
async def clear_cart(ctx: BuyerContext = Depends(get_buyer)):
    try:
        return await ctx.cart.clear_cart()
    except CartLocked as e:
        raise _locked(e)
