"""
Order domain events.

Dataclass events record order lifecycle facts for downstream handling
(e.g., customer notifications). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderEvent:
    order_id: str
    order_number: str
    user_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass
class OrderCreated(OrderEvent):
    total: str = ""
    currency: str = ""


@dataclass
class OrderPaymentSucceeded(OrderEvent):
    payment_method: str = ""
    transaction_id: Optional[str] = None
    amount: str = ""
    currency: str = ""


@dataclass
class OrderPaymentFailed(OrderEvent):
    payment_method: str = ""
    transaction_id: Optional[str] = None


@dataclass
class OrderStatusAdvanced(OrderEvent):
    previous_status: str = ""
    status: str = ""
