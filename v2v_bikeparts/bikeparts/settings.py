# bikeparts/settings.py
from __future__ import annotations
from typing import List, Literal, Optional
from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
import logging
import os

def _parse_cors(v: Optional[str | List[str]]) -> List[str]:
    """
    Accept JSON array (e.g. '["http://localhost:8081"]') or
    comma-separated string ('http://localhost:8081,http://127.0.0.1:3000').
    """
    if v is None:
        return ["http://localhost:3000", "http://localhost:8081"]
    if isinstance(v, list):
        return v
    s = v.strip()
    if not s:
        return ["http://localhost:3000", "http://localhost:8081"]
    # try JSON first
    try:
        parsed = json.loads(s)
        if isinstance(parsed, list) and all(isinstance(x, str) for x in parsed):
            return parsed
    except ValueError:
        pass
    # fallback: comma separated
    return [p.strip() for p in s.split(",") if p.strip()]

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",   # ignore unknown env keys instead of raising
    )

    # --- API ---
    api_host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("API_HOST",))
    api_port: int = Field(default=8000,        validation_alias=AliasChoices("API_PORT",))
    cors_origins_raw: Optional[str | List[str]] = Field(
        default=None, validation_alias=AliasChoices("CORS_ORIGINS",)
    )
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL",))

    # --- Firebase ---
    firebase_project_id: str = Field(
        default="v2v-bike-parts",
        validation_alias=AliasChoices("FIREBASE_PROJECT_ID",)
    )
    google_application_credentials: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_APPLICATION_CREDENTIALS",)
    )

    # --- Stripe ---
    stripe_secret_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("STRIPE_SECRET_KEY",)
    )
    stripe_publishable_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("STRIPE_PUBLISHABLE_KEY",)
    )
    stripe_webhook_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("STRIPE_WEBHOOK_SECRET",)
    )
    # modal = browser checkout, redirect = hosted page opened in an external browser
    checkout_mode: Literal["modal", "redirect"] = Field(
        default="modal", validation_alias=AliasChoices("CHECKOUT_MODE",)
    )
    checkout_success_url: str = Field(
        default="http://localhost:8081/payment-callback",
        validation_alias=AliasChoices("CHECKOUT_SUCCESS_URL",)
    )
    checkout_cancel_url: str = Field(
        default="http://localhost:8081/payment-callback",
        validation_alias=AliasChoices("CHECKOUT_CANCEL_URL",)
    )

    # --- Business rules ---
    merchant_name: str = Field(default="V2V Bike Parts", validation_alias=AliasChoices("MERCHANT_NAME",))
    currency: str = Field(default="INR", validation_alias=AliasChoices("CURRENCY",))
    free_shipping_threshold: float = Field(
        default=2000, validation_alias=AliasChoices("FREE_SHIPPING_THRESHOLD",)
    )
    flat_shipping_fee: float = Field(
        default=100, validation_alias=AliasChoices("FLAT_SHIPPING_FEE",)
    )
    tax_rate: float = Field(default=0.18, validation_alias=AliasChoices("TAX_RATE",))

    # --- Local persistence ---
    local_storage_dir: str = Field(
        default=".localstore", validation_alias=AliasChoices("LOCAL_STORAGE_DIR",)
    )

    # --- Order persistence after a captured payment ---
    order_write_attempts: int = Field(
        default=3, validation_alias=AliasChoices("ORDER_WRITE_ATTEMPTS",)
    )
    order_write_backoff: float = Field(
        default=0.5, validation_alias=AliasChoices("ORDER_WRITE_BACKOFF",)
    )

    # --- Per-buyer contexts: profile refresh and idle eviction ---
    context_ttl: float = Field(default=900, validation_alias=AliasChoices("CONTEXT_TTL",))

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors(self.cors_origins_raw)

# singleton
settings = Settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Make sure GOOGLE_APPLICATION_CREDENTIALS is exported for firebase_admin
if settings.google_application_credentials:
    os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = settings.google_application_credentials
