# bikeparts/routes/orders.py
from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException

from ..deps import AppServices, BuyerContext, get_context, get_services

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
async def list_orders_endpoint(ctx: BuyerContext = Depends(get_context),
                               services: AppServices = Depends(get_services)):
    """The signed-in buyer's orders, newest first."""
    return await services.orders.list_orders(ctx.user.id)


@router.get("/{order_id}")
async def get_order_endpoint(order_id: str,
                             ctx: BuyerContext = Depends(get_context),
                             services: AppServices = Depends(get_services)):
    order = await services.orders.get_order(order_id)
    user = ctx.user
    if not order:
        raise HTTPException(status_code=404, detail="order not found")
    if user.role != "admin" and user.id not in (order.get("buyerId"), order.get("vendorId")):
        raise HTTPException(status_code=404, detail="order not found")
    return order
