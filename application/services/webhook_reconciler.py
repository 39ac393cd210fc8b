"""
Webhook reconciliation: verify signature -> normalize payload -> apply the
payment outcome to the order.

The acknowledgement shapes the provider's retry behavior:

- invalid signature raises ``InvalidSignatureException`` (HTTP 401)
- malformed bodies, ignored event types, applied/duplicate/pending updates,
  invalid transitions and unknown orders are acknowledged (HTTP 200);
  redelivering the same signed bytes cannot change them
- anything else propagates to the HTTP boundary (HTTP 500) so the provider
  redelivers
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from application.dtos.payments import RawWebhookEvent
from application.ports.payment_gateway import PaymentGatewayResolver
from application.services.order_service import OrderApplicationService
from core.exceptions import InvalidSignatureException
from core.logging_config import get_logger
from domain.common.exceptions import (
    InvalidTransitionException,
    OrderNotFoundException,
)
from shared.codes.payment_codes import CanonicalStatus


logger = get_logger(__name__)


class WebhookOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    PENDING = "pending"
    IGNORED = "ignored"
    INVALID_TRANSITION = "invalid_transition"
    ORDER_NOT_FOUND = "order_not_found"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class WebhookAck:
    provider: str
    outcome: WebhookOutcome
    order_id: Optional[str] = None


class WebhookReconciler:
    def __init__(self, gateways: PaymentGatewayResolver, orders: OrderApplicationService) -> None:
        self._gateways = gateways
        self._orders = orders

    async def reconcile(self, event: RawWebhookEvent) -> WebhookAck:
        gateway = self._gateways.get(event.provider)
        provider = gateway.provider

        if not gateway.verify_webhook_signature(event.raw_body, event.signature_header):
            logger.warning(
                "payment_webhook_invalid_signature",
                provider=provider,
                body_bytes=len(event.raw_body),
                has_signature=bool(event.signature_header),
            )
            raise InvalidSignatureException(provider)

        try:
            payload = json.loads(event.raw_body)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning(
                "payment_webhook_malformed_body",
                provider=provider,
                body_bytes=len(event.raw_body),
            )
            return WebhookAck(provider=provider, outcome=WebhookOutcome.MALFORMED)

        result = gateway.process_webhook(payload)
        if result is None:
            return WebhookAck(provider=provider, outcome=WebhookOutcome.IGNORED)

        try:
            update = await self._orders.update_payment_status(
                result.order_id,
                result.canonical_status,
                result.gateway_transaction_id,
                amount=result.amount,
                provider=result.provider,
            )
        except InvalidTransitionException as exc:
            logger.warning(
                "order_payment_invalid_transition",
                provider=provider,
                **(exc.details or {}),
            )
            return WebhookAck(provider, WebhookOutcome.INVALID_TRANSITION, result.order_id)
        except OrderNotFoundException:
            logger.warning(
                "payment_webhook_order_not_found",
                provider=provider,
                order_id=result.order_id,
                transaction_id=result.gateway_transaction_id,
            )
            return WebhookAck(provider, WebhookOutcome.ORDER_NOT_FOUND, result.order_id)

        if update.applied:
            outcome = WebhookOutcome.APPLIED
        elif result.canonical_status == CanonicalStatus.PENDING:
            outcome = WebhookOutcome.PENDING
        else:
            outcome = WebhookOutcome.DUPLICATE
        logger.info(
            "payment_webhook_processed",
            provider=provider,
            order_id=result.order_id,
            canonical_status=result.canonical_status.value,
            outcome=outcome.value,
            received_at=event.received_at.isoformat(),
        )
        return WebhookAck(provider, outcome, result.order_id)
