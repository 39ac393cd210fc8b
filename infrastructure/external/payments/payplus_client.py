"""
PayPlus (local processor) payment-page adapter over its REST API.

Notes:
- ``POST {api_url}/api/v1.0/PaymentPages/generateLink`` with a JSON body;
  the shopper is redirected to the returned ``payment_page_link``.
- A server-to-server ``webhook_url`` is mandatory on create.
- Webhook signatures are the raw HMAC-SHA256 hex digest of the body in the
  ``x-payplus-signature`` header, keyed by the webhook secret (or the API
  secret when no dedicated webhook secret is configured).
- Webhook and transaction amounts arrive in minor units.
- ``GET {api_url}/api/v1.0/Transactions/{payment_id}`` reports the
  processor-side status, so a missed webhook can be recovered by polling.
"""
from __future__ import annotations

from typing import Any, Optional

from application.dtos.payments import (
    NormalizedWebhookResult,
    PaymentIntentRequest,
    PaymentIntentResult,
    PaymentStatusResult,
)
from core.logging_config import get_logger
from domain.payment.fees import PAYPLUS_FEES, FeeSchedule
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentNetworkError


logger = get_logger(__name__)


class PayPlusClient(BasePaymentClient):
    provider = "payplus"
    signature_header_name = "x-payplus-signature"
    requires_webhook_url = True
    default_currency = "ILS"

    @property
    def _cfg(self):
        return self._settings.payplus

    @property
    def is_configured(self) -> bool:
        return bool(self._cfg.secret_key and self._cfg.public_key)

    @property
    def webhook_secret(self) -> Optional[str]:
        return self._cfg.webhook_secret or self._cfg.secret_key

    def fee_schedule(self, currency: Optional[str] = None) -> FeeSchedule:
        return PAYPLUS_FEES

    @property
    def _base_url(self) -> str:
        return self._cfg.api_url.rstrip("/")

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._cfg.secret_key}"}

    def _mock_payment(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        payment_id = self._mock_id("pp", req)
        return PaymentIntentResult(
            success=True,
            provider=self.provider,
            gateway_payment_id=payment_id,
            redirect_url=self._mock_redirect(payment_id, req),
            transaction_id=self._mock_id("txn", req),
            is_mock=True,
        )

    async def _create_remote(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        payload = {
            "payment_page_uid": self._cfg.page_uid,
            "amount": self.to_minor(req.amount, req.currency),
            "currency_code": req.currency,
            "order_id": req.order_id,
            "customer": {
                "name": req.customer_name,
                "email": req.customer_email,
                "phone": req.customer_phone or "",
            },
            "description": req.description or f"Order {req.order_id}",
            "callback_url": req.return_url,
            "cancel_url": req.cancel_url,
            "webhook_url": req.webhook_url,
            "language": self._cfg.language,
        }
        body = await self._request(
            "POST",
            f"{self._base_url}/api/v1.0/PaymentPages/generateLink",
            json=payload,
            headers=self._auth_headers,
        )
        link = body.get("payment_page_link")
        if not link:
            raise PaymentNetworkError(
                "payplus response is missing the payment page link",
                provider=self.provider,
            )
        payment_id = body.get("payment_id")
        transaction_id = body.get("transaction_id")
        return PaymentIntentResult(
            success=True,
            provider=self.provider,
            gateway_payment_id=str(payment_id) if payment_id is not None else None,
            redirect_url=str(link),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
        )

    def _mock_status(self, payment_id: str) -> PaymentStatusResult:
        return PaymentStatusResult(
            success=True,
            provider=self.provider,
            payment_id=payment_id,
            status="completed",
            canonical_status=self._canonical("completed"),
            transaction_id=self._mock_token("txn", payment_id),
            currency=self.default_currency,
            is_mock=True,
        )

    async def _status_remote(self, payment_id: str) -> PaymentStatusResult:
        body = await self._request(
            "GET",
            f"{self._base_url}/api/v1.0/Transactions/{payment_id}",
            headers=self._auth_headers,
        )
        status = body.get("status")
        if not status:
            raise PaymentNetworkError(
                "payplus response is missing the transaction status",
                provider=self.provider,
            )
        transaction_id = body.get("transaction_id")
        currency = str(body.get("currency") or self.default_currency)
        return PaymentStatusResult(
            success=True,
            provider=self.provider,
            payment_id=payment_id,
            status=str(status),
            canonical_status=self._canonical(str(status)),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            amount=self.from_minor(body.get("amount"), currency),
            currency=currency,
        )

    def process_webhook(self, payload: dict[str, Any]) -> Optional[NormalizedWebhookResult]:
        order_id = payload.get("order_id")
        transaction_id = payload.get("transaction_id") or payload.get("payment_id")
        if not order_id or not transaction_id:
            logger.warning(
                "payment_webhook_missing_fields",
                provider=self.provider,
                has_order_id=bool(order_id),
                has_transaction_id=bool(transaction_id),
            )
            return None

        currency = payload.get("currency") or self.default_currency
        return NormalizedWebhookResult(
            provider=self.provider,
            order_id=str(order_id),
            canonical_status=self._canonical(str(payload.get("status") or "")),
            gateway_transaction_id=str(transaction_id),
            amount=self.from_minor(payload.get("amount"), str(currency)),
        )
