# bikeparts/routes/checkout.py
from __future__ import annotations
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..deps import BuyerContext, get_buyer
from ..pricing import OrderAmounts

router = APIRouter(prefix="/checkout", tags=["checkout"])

# outcome -> HTTP status for place-order
_STATUS = {
    "validation_error": 400,
    "payment_failed": 402,
    "payment_cancelled": 409,
    "busy": 409,
    "persistence_failed": 500,
}


class AddressIn(BaseModel):
    index: int = Field(0, ge=0)


class PaymentMethodIn(BaseModel):
    method: Literal["online", "cod"]


class PlaceOrderIn(BaseModel):
    discount: float = Field(0, ge=0)


class CheckoutOut(BaseModel):
    state: str
    addressIndex: Optional[int] = None
    paymentMethod: Optional[str] = None
    busy: bool = False
    pendingOrderId: Optional[str] = None
    amounts: OrderAmounts


def _view(ctx: BuyerContext) -> CheckoutOut:
    co = ctx.checkout
    return CheckoutOut(
        state=co.state.value,
        addressIndex=co.address_index,
        paymentMethod=co.payment_method,
        busy=co.busy,
        pendingOrderId=co.pending_order_id,
        amounts=co.quote(),
    )


@router.get("/quote", response_model=OrderAmounts)
async def quote(discount: float = Query(0, ge=0), ctx: BuyerContext = Depends(get_buyer)):
    return ctx.checkout.quote(discount)


@router.get("", response_model=CheckoutOut)
async def checkout_state(ctx: BuyerContext = Depends(get_buyer)):
    return _view(ctx)


@router.post("/address", response_model=CheckoutOut)
async def select_address(body: AddressIn, ctx: BuyerContext = Depends(get_buyer)):
    try:
        ctx.checkout.select_address(body.index)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(ctx)


@router.post("/payment-method", response_model=CheckoutOut)
async def select_payment_method(body: PaymentMethodIn, ctx: BuyerContext = Depends(get_buyer)):
    try:
        ctx.checkout.select_payment_method(body.method)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(ctx)


@router.post("/place-order", status_code=201)
async def place_order(body: PlaceOrderIn | None = None,
                      ctx: BuyerContext = Depends(get_buyer)):
    """
    Blocks while an online payment is open; the client completes it through
    /payments/{orderId}/... using `pendingOrderId` from GET /checkout.
    """
    outcome = await ctx.checkout.place_order(discount=body.discount if body else 0)
    if not outcome.ok:
        raise HTTPException(
            status_code=_STATUS[outcome.status],
            detail={"status": outcome.status, "message": outcome.message,
                    "orderId": outcome.orderId, "paymentId": outcome.paymentId},
        )
    return {
        "status": outcome.status,
        "orderId": outcome.orderId,
        "paymentId": outcome.paymentId,
        "provisional": outcome.provisional,
        "order": outcome.draft.model_dump() if outcome.draft else None,
    }
