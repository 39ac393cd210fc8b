"""
Payment DTOs (Pydantic v2) used at application boundaries.

Request models accept the storefront's camelCase keys and also snake_case
field names.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.types import condecimal

from shared.codes.payment_codes import CanonicalStatus, PaymentErrorType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    u = v.strip().upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    return u


class PaymentIntentRequest(CamelModel):
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str
    order_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=1)
    customer_email: str = Field(min_length=3)
    customer_phone: Optional[str] = None
    description: str = ""
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    # Required by the local processor only
    webhook_url: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: str) -> str:
        return normalize_currency(v)  # type: ignore[return-value]


class PaymentIntentResult(BaseModel):
    success: bool
    provider: str
    gateway_payment_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_url: Optional[str] = None
    transaction_id: Optional[str] = None
    publishable_key: Optional[str] = None
    error: Optional[str] = None
    # True when produced by the credential-less fallback
    is_mock: bool = False

    @classmethod
    def network_error(cls, provider: str, detail: str) -> "PaymentIntentResult":
        return cls(
            success=False,
            provider=provider,
            error=f"{PaymentErrorType.NETWORK_ERROR.value}: {detail}",
        )


class PaymentStatusResult(CamelModel):
    """Processor-side state of a payment, queried on demand."""

    success: bool
    provider: str
    payment_id: str
    # Raw processor status, e.g. ``succeeded`` or ``completed``
    status: Optional[str] = None
    canonical_status: Optional[CanonicalStatus] = None
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    error: Optional[str] = None
    is_mock: bool = False

    @classmethod
    def network_error(cls, provider: str, payment_id: str, detail: str) -> "PaymentStatusResult":
        return cls(
            success=False,
            provider=provider,
            payment_id=payment_id,
            error=f"{PaymentErrorType.NETWORK_ERROR.value}: {detail}",
        )


class RawWebhookEvent(BaseModel):
    provider: str
    raw_body: bytes
    signature_header: str = ""
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NormalizedWebhookResult(BaseModel):
    provider: str
    order_id: str
    canonical_status: CanonicalStatus
    gateway_transaction_id: str
    amount: Optional[Decimal] = None


class FeeQuoteDTO(CamelModel):
    provider: str
    amount: Decimal
    currency: Optional[str] = None
    fee: Decimal
    total: Decimal
