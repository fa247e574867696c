# bikeparts/auth/session.py
"""
Signed-in identity, backed by Firebase Auth and the `users` collection.

The rest of the service only reads `Session.user`; sign-in/sign-out events are
pushed to listeners so per-user services can be torn down on logout.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from fastapi.concurrency import run_in_threadpool
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from pydantic import BaseModel, ValidationError

from ..services.documents import USERS, DocumentStore
from ..services.firebase import ensure_app
from ..services.local_storage import LocalStorage, discard, load_json, save_json

logger = logging.getLogger(__name__)

UserRole = Literal["vendor", "buyer", "admin"]


class AuthError(Exception):
    pass


class Address(BaseModel):
    id: str
    label: str = "Home"
    street: str
    city: str
    state: str
    postalCode: str
    country: str = "India"
    isDefault: bool = False


class BuyerProfile(BaseModel):
    firstName: str = ""
    lastName: str = ""
    phone: str = ""
    addresses: List[Address] = []


class VendorProfile(BaseModel):
    businessName: str = ""
    contactPerson: str = ""
    phone: str = ""


class SessionUser(BaseModel):
    id: str
    email: str = ""
    role: UserRole
    isActive: bool = True
    profile: Union[BuyerProfile, VendorProfile, Dict[str, Any]] = {}

    @property
    def is_buyer(self) -> bool:
        return self.role == "buyer"

    @property
    def addresses(self) -> List[Address]:
        if isinstance(self.profile, BuyerProfile):
            return self.profile.addresses
        return []

    @property
    def display_name(self) -> str:
        p = self.profile
        if isinstance(p, BuyerProfile):
            return f"{p.firstName} {p.lastName}".strip()
        if isinstance(p, VendorProfile):
            return p.businessName
        return self.email

    @property
    def phone(self) -> str:
        return getattr(self.profile, "phone", "") or ""


def user_from_document(doc: Dict[str, Any]) -> SessionUser:
    role = doc.get("role")
    raw_profile = doc.get("profile") or {}
    if role == "buyer":
        profile: Any = BuyerProfile.model_validate(raw_profile)
    elif role == "vendor":
        profile = VendorProfile.model_validate(raw_profile)
    else:
        profile = raw_profile
    return SessionUser(
        id=doc["id"],
        email=doc.get("email") or "",
        role=role,
        isActive=doc.get("isActive", True),
        profile=profile,
    )


def firebase_verify_token(id_token: str) -> Dict[str, Any]:
    ensure_app()
    return firebase_auth.verify_id_token(id_token)


TokenVerifier = Callable[[str], Dict[str, Any]]
Listener = Callable[[str, SessionUser], Awaitable[None]]


async def uid_from_token(verify_token: TokenVerifier, id_token: str) -> str:
    try:
        claims = await run_in_threadpool(verify_token, id_token)
    except (ValueError, FirebaseError) as e:
        raise AuthError(f"invalid token: {e}") from e
    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        raise AuthError("token has no uid")
    return uid


class Session:
    """One signed-in identity and its lifecycle."""

    def __init__(self,
                 store: DocumentStore,
                 storage: LocalStorage,
                 verify_token: TokenVerifier = firebase_verify_token):
        self.store = store
        self.storage = storage
        self.verify_token = verify_token
        self.user: Optional[SessionUser] = None
        self._listeners: List[Listener] = []

    def on_change(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: str, user: SessionUser) -> None:
        for listener in list(self._listeners):
            await listener(event, user)

    @staticmethod
    def cache_key(uid: str) -> str:
        return f"user:{uid}"

    async def sign_in_with_token(self, id_token: str) -> SessionUser:
        uid = await uid_from_token(self.verify_token, id_token)
        return await self.sign_in(uid)

    async def sign_in(self, uid: str) -> SessionUser:
        """Load `users/{uid}` for an already verified identity."""
        user = await self._load_user(uid)
        if user is None:
            raise AuthError("user profile not found")
        if not user.isActive:
            raise AuthError("account is disabled")

        self.user = user
        await save_json(self.storage, self.cache_key(uid), user.model_dump())
        await self._emit("signed_in", user)
        logger.info("signed in %s (%s)", uid, user.role)
        return user

    async def _load_user(self, uid: str) -> Optional[SessionUser]:
        try:
            doc = await self.store.get(USERS, uid)
        except Exception:
            logger.warning("users/%s unreadable, trying cached profile", uid, exc_info=True)
            cached = await load_json(self.storage, self.cache_key(uid))
            if not cached:
                return None
            try:
                return user_from_document(cached)
            except (KeyError, ValidationError):
                logger.warning("cached profile for %s is stale", uid)
                return None
        if doc is None:
            return None
        return user_from_document(doc)

    async def sign_out(self) -> None:
        user = self.user
        if user is None:
            return
        self.user = None
        await discard(self.storage, self.cache_key(user.id))
        await self._emit("signed_out", user)
        logger.info("signed out %s", user.id)
