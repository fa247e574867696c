# bikeparts/services/documents.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Literal, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from .firebase import ensure_firestore

logger = logging.getLogger(__name__)

# Collections the marketplace keeps in Firestore
USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"
CATEGORIES = "categories"
BIKE_MODELS = "bikeModels"
REVIEWS = "reviews"
MESSAGES = "messages"
CONVERSATIONS = "conversations"
NOTIFICATIONS = "notifications"
PAYMENTS = "payments"

# Firestore rejects batches with more than 500 writes
BATCH_SIZE = 500


class WriteOp(BaseModel):
    type: Literal["set", "update", "delete"]
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


def chunked(ops: List[WriteOp], size: int = BATCH_SIZE) -> Iterable[List[WriteOp]]:
    for i in range(0, len(ops), size):
        yield ops[i:i + size]


class DocumentStore:
    """
    Async document store keyed by string ids under named collections.

    Documents come back as plain dicts with their key under "id".
    """

    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def query(self, collection: str, field: str, value: Any,
                    limit: int = 100) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def batch_write(self, ops: List[WriteOp]) -> int:
        raise NotImplementedError


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore backed by firebase_admin; blocking calls run in the threadpool."""

    def __init__(self, client=None):
        self._client = client

    @property
    def db(self):
        if self._client is None:
            self._client = ensure_firestore()
        return self._client

    async def create(self, collection, doc_id, data):
        # set() on a fixed key: writing the same id twice leaves one document
        await run_in_threadpool(self.db.collection(collection).document(doc_id).set, data)
        out = dict(data)
        out["id"] = doc_id
        return out

    async def get(self, collection, doc_id):
        if not doc_id:
            return None
        snap = await run_in_threadpool(self.db.collection(collection).document(doc_id).get)
        if not snap.exists:
            return None
        data = snap.to_dict() or {}
        data["id"] = snap.id
        return data

    async def update(self, collection, doc_id, partial):
        ref = self.db.collection(collection).document(doc_id)
        await run_in_threadpool(ref.set, partial, merge=True)

    async def query(self, collection, field, value, limit=100):
        q = self.db.collection(collection).where(field, "==", value).limit(limit)

        def _run() -> List[Dict[str, Any]]:
            out: List[Dict[str, Any]] = []
            for snap in q.stream():
                row = snap.to_dict() or {}
                row["id"] = snap.id
                out.append(row)
            return out

        return await run_in_threadpool(_run)

    async def batch_write(self, ops):
        written = 0
        for chunk in chunked(list(ops)):
            batch = self.db.batch()
            for op in chunk:
                ref = self.db.collection(op.collection).document(op.doc_id)
                if op.type == "set":
                    batch.set(ref, op.data or {})
                elif op.type == "update":
                    batch.update(ref, op.data or {})
                else:
                    batch.delete(ref)
            await run_in_threadpool(batch.commit)
            written += len(chunk)
            logger.debug("committed batch of %d writes", len(chunk))
        return written
