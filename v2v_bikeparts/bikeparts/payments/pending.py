# bikeparts/payments/pending.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Literal, Optional

from .gateways import BrowserResult, ModalOutcome

logger = logging.getLogger(__name__)


class _Pending:
    def __init__(self, kind: Literal["modal", "redirect"], payload: Dict[str, Any],
                 owner: Optional[str]):
        self.kind = kind
        self.payload = payload
        self.owner = owner
        self.future: asyncio.Future = asyncio.get_running_loop().create_future()


class PendingCheckouts:
    """
    Launcher used by the HTTP service for both gateway strategies.

    The gateway awaits a future per order; the client fetches what it must
    show (modal options or the checkout URL) and reports the outcome through
    the /payments routes, which resolve that future. Nothing times out.

    Each entry belongs to the buyer who placed the order. Callers pass
    `owner=uid` and an entry owned by someone else looks like no entry at all.
    """

    def __init__(self):
        self._pending: Dict[str, _Pending] = {}

    async def _wait(self, order_id: str, kind, payload, owner):
        if order_id in self._pending:
            raise RuntimeError(f"checkout for {order_id} is already open")
        entry = _Pending(kind, payload, owner)
        self._pending[order_id] = entry
        logger.info("waiting on %s checkout for %s (buyer %s)", kind, order_id, owner)
        try:
            return await entry.future
        finally:
            self._pending.pop(order_id, None)

    async def open_modal(self, order_id: str, options: Dict[str, Any],
                         owner: Optional[str] = None) -> ModalOutcome:
        return await self._wait(order_id, "modal", options, owner)

    async def open_url(self, order_id: str, url: str,
                       owner: Optional[str] = None) -> BrowserResult:
        return await self._wait(order_id, "redirect", {"url": url}, owner)

    def _entry(self, order_id: str, owner: Optional[str]) -> Optional[_Pending]:
        entry = self._pending.get(order_id)
        if entry is None:
            return None
        if entry.owner is not None and entry.owner != owner:
            logger.warning("checkout %s touched by %s, owned by %s", order_id, owner, entry.owner)
            return None
        return entry

    def describe(self, order_id: str, owner: Optional[str] = None) -> Optional[Dict[str, Any]]:
        entry = self._entry(order_id, owner)
        if entry is None:
            return None
        return {"orderId": order_id, "kind": entry.kind, **entry.payload}

    def _resolve(self, entry: _Pending, value) -> bool:
        if entry.future.done():
            return False
        entry.future.set_result(value)
        return True

    def complete(self, order_id: str, paymentId: Optional[str] = None,
                 providerOrderId: Optional[str] = None,
                 signature: Optional[str] = None,
                 owner: Optional[str] = None) -> bool:
        entry = self._entry(order_id, owner)
        if entry is None:
            return False
        if entry.kind == "modal":
            value: Any = ModalOutcome(kind="completed", paymentId=paymentId,
                                      providerOrderId=providerOrderId, signature=signature)
        else:
            value = BrowserResult(type="success")
        return self._resolve(entry, value)

    def dismiss(self, order_id: str, owner: Optional[str] = None) -> bool:
        entry = self._entry(order_id, owner)
        if entry is None:
            return False
        if entry.kind == "modal":
            return self._resolve(entry, ModalOutcome(kind="dismissed"))
        return self._resolve(entry, BrowserResult(type="cancel"))

    def fail(self, order_id: str, error: str, owner: Optional[str] = None) -> bool:
        entry = self._entry(order_id, owner)
        if entry is None:
            return False
        if entry.kind != "modal":
            # the external browser cannot report a decline; the webhook will
            raise ValueError("failures are only reported for modal checkouts")
        return self._resolve(entry, ModalOutcome(kind="failed", error=error))

    def browser_closed(self, order_id: str, owner: Optional[str] = None) -> bool:
        """Browser view closed without an explicit cancel."""
        entry = self._entry(order_id, owner)
        if entry is None or entry.kind != "redirect":
            return False
        return self._resolve(entry, BrowserResult(type="dismiss"))
