"""
Order DTOs (Pydantic v2) used at application boundaries.

Structural typing only: business validation (required sections, supported
payment method, totals) happens in the order application service so it
reports the storefront's human-readable messages.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import Field, field_validator, model_validator

from application.dtos.payments import CamelModel, normalize_currency


class OrderItemDTO(CamelModel):
    product_id: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    name: Optional[str] = None
    sku: Optional[str] = None
    customization: Optional[dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_cart_product(cls, data: Any) -> Any:
        # Cart lines carry price/name/sku inside a nested "product" object
        if isinstance(data, dict) and isinstance(data.get("product"), dict):
            product = data["product"]
            data = dict(data)
            data.setdefault("unitPrice", product.get("price"))
            data.setdefault("name", product.get("name"))
            data.setdefault("sku", product.get("sku"))
        return data


class AddressDTO(CamelModel):
    first_name: str
    last_name: str
    company: Optional[str] = None
    address1: str
    address2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str
    phone: Optional[str] = None


class BillingAddressDTO(AddressDTO):
    same_as_shipping: bool = False


class ShippingMethodDTO(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    cost: Decimal = Decimal("0")
    estimated_days: Optional[int] = None
    carrier: Optional[str] = None


class CreateOrderDTO(CamelModel):
    items: Optional[list[OrderItemDTO]] = None
    shipping_address: Optional[AddressDTO] = None
    billing_address: Optional[BillingAddressDTO] = None
    shipping_method: Optional[ShippingMethodDTO] = None
    payment_method: Optional[str] = None
    customer_notes: Optional[str] = Field(default=None, max_length=2000)
    subtotal: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Optional[Decimal] = None
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return normalize_currency(v)


class CreateOrderResultDTO(CamelModel):
    order_id: str
    order_number: str


class OrderDTO(CamelModel):
    id: str
    order_number: str
    user_id: str
    status: str
    payment_method: str
    items: list[OrderItemDTO]
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    shipping_method: dict[str, Any]
    customer_notes: Optional[str] = None
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class PaymentStatusUpdateDTO(CamelModel):
    order_id: str
    status: str
    transaction_id: Optional[str] = None
    # False for replays and pending notifications
    applied: bool


class OrderQuoteRequestDTO(CamelModel):
    subtotal: Decimal = Field(ge=0)
    currency: Optional[str] = None


class OrderQuoteDTO(CamelModel):
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str
