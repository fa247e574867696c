"""Shared fixtures: in-memory collaborators so tests run without Firebase or Stripe."""
from __future__ import annotations

import copy
import os
from typing import Any, Dict, List, Optional

# Set dummy env vars BEFORE any app imports
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_dummy")
os.environ.setdefault("CHECKOUT_MODE", "modal")

import pytest

from bikeparts.auth.session import Session
from bikeparts.cart.models import Product
from bikeparts.cart.store import CartStore
from bikeparts.checkout.orchestrator import CheckoutOrchestrator
from bikeparts.payments.base import PaymentGateway, PaymentResult
from bikeparts.services.documents import DocumentStore, PRODUCTS, USERS
from bikeparts.services.local_storage import MemoryStorage
from bikeparts.services.orders import OrderRepository


# ---------- Fake document store ----------

class FakeDocumentStore(DocumentStore):
    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.fail_creates = 0          # next N create() calls raise
        self.batches: List[int] = []   # size of each committed batch

    def _col(self, name):
        return self.collections.setdefault(name, {})

    async def create(self, collection, doc_id, data):
        if self.fail_creates:
            self.fail_creates -= 1
            raise ConnectionError("firestore unavailable")
        self._col(collection)[doc_id] = copy.deepcopy(data)
        return {**data, "id": doc_id}

    async def get(self, collection, doc_id):
        doc = self._col(collection).get(doc_id)
        if doc is None:
            return None
        return {**copy.deepcopy(doc), "id": doc_id}

    async def update(self, collection, doc_id, partial):
        self._col(collection).setdefault(doc_id, {}).update(copy.deepcopy(partial))

    async def query(self, collection, field, value, limit=100):
        rows = [{**copy.deepcopy(d), "id": k}
                for k, d in self._col(collection).items() if d.get(field) == value]
        return rows[:limit]

    async def batch_write(self, ops):
        from bikeparts.services.documents import chunked
        written = 0
        for chunk in chunked(list(ops)):
            for op in chunk:
                col = self._col(op.collection)
                if op.type == "set":
                    col[op.doc_id] = copy.deepcopy(op.data or {})
                elif op.type == "update":
                    col.setdefault(op.doc_id, {}).update(op.data or {})
                else:
                    col.pop(op.doc_id, None)
            self.batches.append(len(chunk))
            written += len(chunk)
        return written


class FakeGateway(PaymentGateway):
    def __init__(self, result: Optional[PaymentResult] = None):
        self.result = result or PaymentResult(
            success=True, paymentId="pi_123", providerOrderId="pi_123")
        self.requests = []

    async def open_checkout(self, request):
        self.requests.append(request)
        return self.result


BUYER = {
    "email": "asha@example.com",
    "role": "buyer",
    "isActive": True,
    "profile": {
        "firstName": "Asha",
        "lastName": "Rao",
        "phone": "9876543210",
        "addresses": [
            {"id": "addr-1", "label": "Home", "street": "12 MG Road", "city": "Pune",
             "state": "Maharashtra", "postalCode": "411001", "country": "India",
             "isDefault": True},
            {"id": "addr-2", "label": "Work", "street": "4 Ring Road", "city": "Mumbai",
             "state": "Maharashtra", "postalCode": "400001", "country": "India"},
        ],
    },
}

VENDOR = {
    "email": "parts@example.com",
    "role": "vendor",
    "profile": {"businessName": "Rao Motors", "contactPerson": "Ravi", "phone": "9123456780"},
}


def make_product(pid="p1", price=1500, vendor="v1", title="Brake Pad Set"):
    return Product(id=pid, vendorId=vendor, title=title, price=price,
                   images=[f"https://img.example.com/{pid}.jpg"])


def fake_verify_token(token: str) -> Dict[str, Any]:
    if not token.startswith("token-"):
        raise ValueError("bad token")
    return {"uid": token[len("token-"):]}


# ---------- Fixtures ----------

@pytest.fixture()
def store():
    s = FakeDocumentStore()
    s._col(USERS)["buyer1"] = copy.deepcopy(BUYER)
    s._col(USERS)["vendor1"] = copy.deepcopy(VENDOR)
    for p in (make_product("p1", 1500), make_product("p2", 800, title="Chain Kit"),
              make_product("p3", 2500, vendor="v2", title="Rear Shock")):
        s._col(PRODUCTS)[p.id] = {**p.model_dump(exclude={"id"}), "isActive": True, "stock": 10}
    return s


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def session(store, storage):
    return Session(store, storage, verify_token=fake_verify_token)


@pytest.fixture()
def cart(storage):
    return CartStore(storage, key="cart:buyer1")


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def orchestrator(cart, session, gateway, store):
    async def _no_sleep(_):
        return None
    return CheckoutOrchestrator(cart, session, gateway, OrderRepository(store), sleep=_no_sleep)


@pytest.fixture()
def services(store, storage, gateway):
    from bikeparts.deps import AppServices
    from bikeparts.payments.stripe_client import StripeClient

    svc = AppServices(store, storage, StripeClient("sk_test_dummy", "whsec_test"),
                      verify_token=fake_verify_token)
    svc.gateway = gateway
    return svc


@pytest.fixture()
def client(services):
    """FastAPI TestClient (sync) with in-memory services."""
    from fastapi.testclient import TestClient
    from bikeparts.main import app

    app.state.services = services
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.state.services = None


@pytest.fixture(name="make_product")
def _make_product_fixture():
    return make_product


@pytest.fixture(name="fake_gateway_cls")
def _fake_gateway_cls():
    return FakeGateway
