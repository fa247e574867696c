# bikeparts/deps.py
"""
Service wiring for the HTTP app.

`AppServices` is built once at startup. Each signed-in buyer gets a
`BuyerContext` (session, cart, checkout) that lives until they sign out or
sit idle longer than CONTEXT_TTL; an active context reloads its profile once
per CONTEXT_TTL.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException, Request

from .auth.session import (
    AuthError,
    Session,
    SessionUser,
    TokenVerifier,
    firebase_verify_token,
    uid_from_token,
)
from .cart.store import CartStore
from .checkout.orchestrator import CheckoutOrchestrator
from .payments.gateways import build_gateway
from .payments.pending import PendingCheckouts
from .payments.stripe_client import StripeClient
from .services.documents import DocumentStore, FirestoreDocumentStore
from .services.local_storage import JsonFileStorage, LocalStorage
from .services.orders import OrderRepository
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class BuyerContext:
    def __init__(self, session: Session, cart: CartStore, checkout: CheckoutOrchestrator,
                 now: float = 0.0):
        self.session = session
        self.cart = cart
        self.checkout = checkout
        self.refreshed_at = now
        self.last_seen = now

    @property
    def user(self) -> SessionUser:
        return self.session.user


class AppServices:
    def __init__(self,
                 store: DocumentStore,
                 storage: LocalStorage,
                 stripe_client: StripeClient,
                 verify_token: TokenVerifier = firebase_verify_token,
                 settings: Settings = default_settings,
                 pending: Optional[PendingCheckouts] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.storage = storage
        self.stripe = stripe_client
        self.verify_token = verify_token
        self.settings = settings
        self.pending = pending or PendingCheckouts()
        self.gateway = build_gateway(settings, stripe_client, self.pending)
        self.orders = OrderRepository(store)
        self.contexts: Dict[str, BuyerContext] = {}
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, s: Settings = default_settings) -> "AppServices":
        return cls(
            store=FirestoreDocumentStore(),
            storage=JsonFileStorage(s.local_storage_dir),
            stripe_client=StripeClient(s.stripe_secret_key, s.stripe_webhook_secret),
            settings=s,
        )

    async def context_for_token(self, id_token: str) -> BuyerContext:
        uid = await uid_from_token(self.verify_token, id_token)
        # one context per uid, even when first requests arrive together
        async with self._locks.setdefault(uid, asyncio.Lock()):
            now = self.clock()
            self._evict_idle(now)
            ctx = self.contexts.get(uid)
            if ctx is None:
                ctx = await self._build_context(uid, now)
            elif now - ctx.refreshed_at > self.settings.context_ttl and not ctx.checkout.busy:
                await self._refresh(uid, ctx, now)
            ctx.last_seen = now
            return ctx

    async def _build_context(self, uid: str, now: float) -> BuyerContext:
        session = Session(self.store, self.storage, self.verify_token)
        cart = CartStore(self.storage, key=f"cart:{uid}")
        checkout = CheckoutOrchestrator.from_settings(
            cart, session, self.gateway, self.orders, self.settings
        )
        ctx = BuyerContext(session, cart, checkout, now)
        session.on_change(self._on_session_change)
        await session.sign_in(uid)
        await cart.load()
        self.contexts[uid] = ctx
        return ctx

    async def _refresh(self, uid: str, ctx: BuyerContext, now: float) -> None:
        """Reload `users/{uid}` so address and role changes reach the checkout."""
        try:
            await ctx.session.sign_in(uid)
        except AuthError:
            self._drop(uid)
            raise
        ctx.refreshed_at = now

    def _evict_idle(self, now: float) -> None:
        ttl = self.settings.context_ttl
        for uid, ctx in list(self.contexts.items()):
            if now - ctx.last_seen > ttl and not ctx.checkout.busy:
                self._drop(uid)
                logger.info("evicted idle context for %s", uid)

    def _drop(self, uid: str) -> None:
        ctx = self.contexts.pop(uid, None)
        if ctx is not None:
            ctx.checkout.reset()

    async def _on_session_change(self, event: str, user: SessionUser) -> None:
        if event != "signed_out":
            return
        if user.id in self.contexts:
            self._drop(user.id)
            logger.info("tore down cart and checkout for %s", user.id)


def get_services(request: Request) -> AppServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = AppServices.from_settings()
        request.app.state.services = services
    return services


async def get_context(
    authorization: Optional[str] = Header(None),
    services: AppServices = Depends(get_services),
) -> BuyerContext:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return await services.context_for_token(token)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))


async def get_buyer(ctx: BuyerContext = Depends(get_context)) -> BuyerContext:
    if not ctx.user.is_buyer:
        raise HTTPException(status_code=403, detail="buyer account required")
    return ctx
