"""
默认通知分发器：以结构化日志记录订单事件（确认邮件等外部通道的占位实现）
"""
from __future__ import annotations

from dataclasses import asdict

from core.logging_config import get_logger
from domain.order.events import (
    OrderCreated,
    OrderEvent,
    OrderPaymentFailed,
    OrderPaymentSucceeded,
    OrderStatusAdvanced,
)


logger = get_logger(__name__)

_EVENT_LOG_NAMES = {
    OrderCreated: "order_created_notification",
    OrderPaymentSucceeded: "order_payment_succeeded",
    OrderPaymentFailed: "order_payment_failed",
    OrderStatusAdvanced: "order_status_advanced",
}


class LoggingNotificationDispatcher:
    async def dispatch(self, event: OrderEvent) -> None:
        payload = asdict(event)
        payload["occurred_at"] = event.occurred_at.isoformat()
        logger.info(
            _EVENT_LOG_NAMES.get(type(event), "order_event"),
            event_name=event.name,
            **payload,
        )
