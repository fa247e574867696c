# bikeparts/routes/payments.py
from __future__ import annotations
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from ..deps import AppServices, BuyerContext, get_buyer, get_services
from ..payments.stripe_client import PaymentsNotConfigured
from ..payments.webhook import handle_stripe_webhook

router = APIRouter(prefix="/payments", tags=["payments"])


class CompleteBody(BaseModel):
    # camelCase to match what the checkout page posts back
    paymentId: Optional[str] = None
    providerOrderId: Optional[str] = None
    signature: Optional[str] = None


class FailBody(BaseModel):
    error: str = "Payment failed"


@router.post("/webhook")
async def stripe_webhook(request: Request, services: AppServices = Depends(get_services)):
    raw = await request.body()
    try:
        return await handle_stripe_webhook(
            raw, request.headers.get("stripe-signature"),
            services.stripe, services.store, services.orders,
        )
    except PaymentsNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise HTTPException(status_code=400, detail=f"invalid webhook: {e}")


@router.get("/{order_id}")
async def pending_checkout(order_id: str,
                           ctx: BuyerContext = Depends(get_buyer),
                           services: AppServices = Depends(get_services)):
    """What the buyer must show for their open checkout (modal options or URL)."""
    pending = services.pending.describe(order_id, owner=ctx.user.id)
    if pending is None:
        raise HTTPException(status_code=404, detail="no open checkout for this order")
    return pending


@router.post("/{order_id}/complete")
async def complete(order_id: str, body: CompleteBody,
                   ctx: BuyerContext = Depends(get_buyer),
                   services: AppServices = Depends(get_services)):
    if not services.pending.complete(order_id, owner=ctx.user.id, **body.model_dump()):
        raise HTTPException(status_code=404, detail="no open checkout for this order")
    return {"ok": True}


@router.post("/{order_id}/dismiss")
async def dismiss(order_id: str,
                  ctx: BuyerContext = Depends(get_buyer),
                  services: AppServices = Depends(get_services)):
    if not services.pending.dismiss(order_id, owner=ctx.user.id):
        raise HTTPException(status_code=404, detail="no open checkout for this order")
    return {"ok": True}


@router.post("/{order_id}/fail")
async def fail(order_id: str, body: FailBody,
               ctx: BuyerContext = Depends(get_buyer),
               services: AppServices = Depends(get_services)):
    try:
        resolved = services.pending.fail(order_id, body.error, owner=ctx.user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not resolved:
        raise HTTPException(status_code=404, detail="no open checkout for this order")
    return {"ok": True}


@router.post("/{order_id}/redirect")
async def browser_closed(order_id: str,
                         ctx: BuyerContext = Depends(get_buyer),
                         services: AppServices = Depends(get_services)):
    """The external browser closed without a cancel (redirect checkouts only)."""
    if not services.pending.browser_closed(order_id, owner=ctx.user.id):
        raise HTTPException(status_code=404, detail="no open redirect checkout for this order")
    return {"ok": True}
