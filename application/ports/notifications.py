"""
Notification dispatcher port.

Invoked after order lifecycle events are committed. Implementations may fail;
callers log and continue, the order state is already durable.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.order.events import OrderEvent


@runtime_checkable
class NotificationDispatcher(Protocol):
    async def dispatch(self, event: OrderEvent) -> None: ...
