"""
Application service orchestrating payment-intent creation, status queries
and fee quotes.

This class depends only on the application gateway ports and DTOs.
Gateway implementations are provided by infrastructure and injected from the
composition root, keeping dependencies one-way.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from application.dtos.payments import (
    FeeQuoteDTO,
    PaymentIntentRequest,
    PaymentIntentResult,
    PaymentStatusResult,
)
from application.ports.payment_gateway import PaymentGatewayResolver
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException


logger = get_logger(__name__)


def _first_error_field(exc: ValidationError) -> Optional[str]:
    errors = exc.errors()
    if not errors:
        return None
    return ".".join(str(loc) for loc in errors[0].get("loc", ())) or None


class PaymentService:
    def __init__(self, gateways: PaymentGatewayResolver) -> None:
        self._gateways = gateways

    async def create_payment(self, provider: str, payload: dict[str, Any]) -> PaymentIntentResult:
        gateway = self._gateways.get(provider)
        try:
            req = PaymentIntentRequest.model_validate(payload)
        except ValidationError as exc:
            raise DomainValidationException(
                "Missing required fields",
                field=_first_error_field(exc),
                details={
                    "errors": [
                        {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
                        for e in exc.errors()
                    ]
                },
            ) from exc
        if gateway.requires_webhook_url and not req.webhook_url:
            raise DomainValidationException(
                f"webhookUrl is required for {gateway.provider}",
                field="webhookUrl",
            )

        logger.info(
            "payment_create_request",
            provider=gateway.provider,
            order_id=req.order_id,
            amount=str(req.amount),
            currency=req.currency,
            configured=gateway.is_configured,
        )
        result = await gateway.create_payment(req)
        logger.info(
            "payment_create_result",
            provider=gateway.provider,
            order_id=req.order_id,
            success=result.success,
            is_mock=result.is_mock,
        )
        return result

    async def get_payment_status(self, provider: str, payment_id: str) -> PaymentStatusResult:
        """Ask the processor for the current state of a payment.

        Used to recover from a missed or delayed webhook; the result is
        informational and never changes the order by itself.
        """
        gateway = self._gateways.get(provider)
        payment_id = (payment_id or "").strip()
        if not payment_id:
            raise DomainValidationException("Payment id is required", field="paymentId")
        result = await gateway.get_payment_status(payment_id)
        logger.info(
            "payment_status_result",
            provider=gateway.provider,
            payment_id=payment_id,
            success=result.success,
            status=result.status,
            is_mock=result.is_mock,
        )
        return result

    def quote_fees(self, provider: str, amount: Decimal, currency: Optional[str] = None) -> FeeQuoteDTO:
        gateway = self._gateways.get(provider)
        quote = gateway.calculate_fees(amount, currency)
        return FeeQuoteDTO(
            provider=gateway.provider,
            amount=amount,
            currency=currency.upper() if currency else None,
            fee=quote.fee,
            total=quote.total,
        )
