# bikeparts/services/orders.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .documents import ORDERS, DocumentStore

logger = logging.getLogger(__name__)

def _now():
    return datetime.now(timezone.utc)


def build_order_document(draft, payment=None) -> Dict[str, Any]:
    """
    Flatten an OrderDraft (plus the provider result, if any) into the
    `orders/{orderId}` document shape the dashboard and mobile app read.
    """
    now = _now()
    online = draft.paymentMethod == "online"
    if not online:
        pay_status = "pending"
    elif payment is not None and payment.success and not payment.provisional:
        pay_status = "completed"
    else:
        pay_status = "pending"

    payment_details: Dict[str, Any] = {
        "method": draft.paymentMethod,
        "status": pay_status,
        "amount": draft.totalAmount,
        "currency": draft.currency,
    }
    if payment is not None:
        payment_details.update({
            "transactionId": payment.paymentId,
            "providerOrderId": payment.providerOrderId,
            "providerPaymentId": payment.paymentId,
            "signature": payment.signature,
        })
        if pay_status == "completed":
            payment_details["paidAt"] = now

    items = [li.model_dump() for li in draft.items]
    return {
        "id": draft.orderId,
        "buyerId": draft.buyerId,
        "vendorId": items[0]["vendorId"] if items else None,
        "items": items,
        "subtotal": draft.subtotal,
        "shippingCost": draft.shippingCost,
        "tax": draft.tax,
        "discount": draft.discount,
        "totalAmount": draft.totalAmount,
        "status": "confirmed" if pay_status == "completed" else "pending",
        "shippingAddress": draft.shippingAddress.model_dump(),
        "billingAddress": draft.shippingAddress.model_dump(),
        "paymentDetails": payment_details,
        "createdAt": now,
        "updatedAt": now,
    }


class OrderRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def save(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        # keyed by orderId, so a retried write never duplicates the order
        return await self.store.create(ORDERS, doc["id"], doc)

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(ORDERS, order_id)

    async def list_orders(self, buyer_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        rows = await self.store.query(ORDERS, "buyerId", buyer_id, limit=limit)
        rows.sort(key=lambda r: str(r.get("createdAt") or ""), reverse=True)
        return rows

    async def mark_paid(self, order_id: str, payment_id: Optional[str]) -> bool:
        """Record a confirmed payment. Returns False if the order is unknown."""
        order = await self.get_order(order_id)
        if order is None:
            logger.warning("payment %s confirmed for unknown order %s", payment_id, order_id)
            return False
        details = dict(order.get("paymentDetails") or {})
        if details.get("status") == "completed":
            return True  # idempotent
        now = _now()
        details.update({"status": "completed", "paidAt": now})
        if payment_id and not details.get("providerPaymentId"):
            details["providerPaymentId"] = payment_id
        status = order.get("status")
        await self.store.update(ORDERS, order_id, {
            "paymentDetails": details,
            "status": "confirmed" if status in (None, "pending") else status,
            "updatedAt": now,
        })
        return True

    async def mark_payment_failed(self, order_id: str, reason: str) -> bool:
        order = await self.get_order(order_id)
        if order is None:
            return False
        details = dict(order.get("paymentDetails") or {})
        if details.get("status") == "completed":
            return True
        details.update({"status": "failed", "failure": reason})
        await self.store.update(ORDERS, order_id, {
            "paymentDetails": details, "updatedAt": _now(),
        })
        return True
