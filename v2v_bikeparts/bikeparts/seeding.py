# bikeparts/seeding.py
"""Sample orders for development databases, priced the same way checkout prices."""
from __future__ import annotations

import logging
import random
import string
import time
from typing import Any, Dict, List, Optional

from .auth.session import Address
from .cart.models import Product, line_from_product
from .checkout.models import OrderDraft, generate_order_id
from .pricing import price_items
from .services.documents import ORDERS, PRODUCTS, USERS, DocumentStore, WriteOp
from .services.orders import build_order_document

logger = logging.getLogger(__name__)

CITIES = {
    "Maharashtra": ["Mumbai", "Pune", "Nagpur"],
    "Karnataka": ["Bangalore", "Mysore", "Mangalore"],
    "Tamil Nadu": ["Chennai", "Coimbatore", "Madurai"],
    "Delhi": ["New Delhi"],
    "Telangana": ["Hyderabad", "Warangal"],
}

# (weight, order status); biased towards completed orders
STATUS_WEIGHTS = [
    (10, "delivered"), (5, "shipped"), (3, "processing"),
    (2, "confirmed"), (1, "pending"), (1, "cancelled"),
]


def random_address(rng: random.Random, n: int) -> Address:
    state = rng.choice(list(CITIES))
    return Address(
        id=f"addr-{n}",
        label=rng.choice(["Home", "Work", "Other"]),
        street=f"{rng.randint(1, 999)}, {rng.choice(['MG Road', 'Station Road', 'Ring Road'])}",
        city=rng.choice(CITIES[state]),
        state=state,
        postalCode=str(rng.randint(110001, 855999)),
        country="India",
        isDefault=True,
    )


def _token(rng: random.Random, n: int) -> str:
    return "".join(rng.choices(string.ascii_letters + string.digits, k=n))


def build_orders(buyer_ids: List[str], products: List[Product], count: int,
                 rng: Optional[random.Random] = None,
                 now_ms: Optional[int] = None) -> List[Dict[str, Any]]:
    if not buyer_ids or not products:
        raise ValueError("need at least one buyer and one product to seed orders")
    rng = rng or random.Random()
    now_ms = now_ms or int(time.time() * 1000)
    weights, statuses = zip(*STATUS_WEIGHTS)

    out: List[Dict[str, Any]] = []
    for i in range(count):
        picked = rng.sample(products, k=min(len(products), rng.randint(1, 4)))
        # one vendor per order
        vendor_id = picked[0].vendorId
        lines = [line_from_product(p, rng.randint(1, 3)) for p in picked if p.vendorId == vendor_id]
        discount = rng.randint(50, 500) if rng.random() < 0.3 else 0
        amounts = price_items(lines, discount=discount)
        method = rng.choice(["online", "cod"])

        draft = OrderDraft(
            # the id sequence wraps at 1000, so step the clock part once per thousand
            orderId=generate_order_id(now_ms + i // 1000, seq=i),
            buyerId=rng.choice(buyer_ids),
            items=tuple(lines),
            subtotal=amounts.subtotal,
            shippingCost=amounts.shippingCost,
            tax=amounts.tax,
            discount=amounts.discount,
            totalAmount=amounts.totalAmount,
            paymentMethod=method,
            shippingAddress=random_address(rng, i + 1),
        )
        doc = build_order_document(draft)
        status = rng.choices(statuses, weights=weights)[0]
        doc["status"] = status
        details = doc["paymentDetails"]
        details["status"] = {"pending": "pending", "cancelled": "failed"}.get(status, "completed")
        if method == "online":
            details["providerOrderId"] = f"pi_{_token(rng, 14)}"
            if status != "pending":
                details["providerPaymentId"] = details["providerOrderId"]
        out.append(doc)
    return out


async def seed_orders(store: DocumentStore, count: int,
                      rng: Optional[random.Random] = None) -> int:
    buyers = await store.query(USERS, "role", "buyer", limit=1000)
    product_docs = await store.query(PRODUCTS, "isActive", True, limit=1000)
    products = [Product.model_validate(d) for d in product_docs]
    logger.info("seeding %d orders from %d buyers and %d products",
                count, len(buyers), len(products))

    docs = build_orders([b["id"] for b in buyers], products, count, rng)
    ops = [WriteOp(type="set", collection=ORDERS, doc_id=d["id"], data=d) for d in docs]
    written = await store.batch_write(ops)
    logger.info("seeded %d orders", written)
    return written
