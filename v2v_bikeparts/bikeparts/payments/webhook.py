# bikeparts/payments/webhook.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..services.documents import PAYMENTS, DocumentStore
from ..services.orders import OrderRepository
from .stripe_client import StripeClient

logger = logging.getLogger(__name__)

SUCCEEDED = ("checkout.session.completed", "payment_intent.succeeded")
FAILED = ("payment_intent.payment_failed", "checkout.session.expired")


def _order_id(data: Dict[str, Any]) -> Optional[str]:
    return (data.get("client_reference_id")
            or (data.get("metadata") or {}).get("orderId"))


def _payment_id(typ: str, data: Dict[str, Any]) -> Optional[str]:
    if typ.startswith("checkout.session"):
        return data.get("payment_intent")
    return data.get("id")


async def handle_stripe_webhook(raw_body: bytes, signature: Optional[str],
                                client: StripeClient, store: DocumentStore,
                                orders: OrderRepository) -> Dict[str, Any]:
    """
    Server-side confirmation of payments. The signature check in
    construct_event is the trust boundary; client reports are not.
    """
    client.construct_event(raw_body, signature)
    # verified; read the plain JSON rather than the SDK object
    event = json.loads(raw_body.decode("utf-8"))

    typ = event["type"]
    data = event["data"]["object"]
    order_id = _order_id(data)
    payment_id = _payment_id(typ, data)

    # raw event kept for reconciliation of orders that failed to save
    await store.create(PAYMENTS, event["id"], {
        "type": typ,
        "orderId": order_id,
        "paymentId": payment_id,
        "at": datetime.now(timezone.utc),
        "payload": event,
    })

    if not order_id:
        logger.warning("stripe event %s (%s) has no orderId", event["id"], typ)
        return {"ok": True, "orderId": None, "handled": False}

    if typ in SUCCEEDED:
        found = await orders.mark_paid(order_id, payment_id)
        return {"ok": True, "orderId": order_id, "handled": found}
    if typ in FAILED:
        found = await orders.mark_payment_failed(order_id, typ)
        return {"ok": True, "orderId": order_id, "handled": found}
    return {"ok": True, "orderId": order_id, "handled": False}
