"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so gateway credentials can be managed
(and rotated) independently, e.g. ``STRIPE__SECRET_KEY`` or
``PAYPLUS__SECRET_KEY``. Absent credentials switch the matching adapter to
its mock fallback.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 10.0


class WebhookSettings(BaseModel):
    # Accepting unsigned webhooks without a configured secret is demo-only
    allow_unsigned_without_secret: bool = True


class StripeSettings(BaseModel):
    api_url: str = "https://api.stripe.com"
    secret_key: Optional[str] = None
    publishable_key: Optional[str] = None
    webhook_secret: Optional[str] = None


class PayPlusSettings(BaseModel):
    api_url: str = "https://api.payplus.co.il"
    secret_key: Optional[str] = None
    public_key: Optional[str] = None
    page_uid: Optional[str] = None
    # Falls back to secret_key when unset
    webhook_secret: Optional[str] = None
    language: str = "he"


class PaymentSettings(BaseSettings):
    app_url: str = Field(default="http://localhost:3000")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    stripe: StripeSettings = Field(default_factory=StripeSettings)
    payplus: PayPlusSettings = Field(default_factory=PayPlusSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
