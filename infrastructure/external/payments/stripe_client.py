"""
Stripe PaymentIntents adapter using the official stripe-python SDK.

Notes:
- Calls go through a ``stripe.StripeClient`` (``client.v1.payment_intents``)
  built lazily from settings, with ``max_network_retries=0`` and the
  configured total timeout. A stable ``idempotency_key`` derived from the
  order makes client retries after a NETWORK_ERROR safe.
- Any ``stripe.StripeError`` (connection, API, auth, rate limit) surfaces as
  NETWORK_ERROR; the adapter never raises for expected failures.
- Webhook signatures are HMAC-SHA256 over the raw body, sent as
  ``sha256=<hex>`` in the ``stripe-signature`` header.
- Only ``payment_intent.*`` events are reconciled; every other event type is
  acknowledged and ignored.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional

import stripe

from application.dtos.payments import (
    NormalizedWebhookResult,
    PaymentIntentRequest,
    PaymentIntentResult,
    PaymentStatusResult,
)
from core.logging_config import get_logger
from core.settings import PaymentSettings
from domain.payment.fees import FeeSchedule, stripe_fee_schedule
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentNetworkError


logger = get_logger(__name__)


class StripeClient(BasePaymentClient):
    provider = "stripe"
    signature_header_name = "stripe-signature"
    signature_prefix = "sha256="
    event_prefix = "payment_intent."

    def __init__(
        self,
        *,
        settings: PaymentSettings,
        sdk: Optional[stripe.StripeClient] = None,
    ) -> None:
        super().__init__(settings=settings)
        self._sdk = sdk
        # Only set when the SDK client is built here
        self._sdk_http: Optional[stripe.HTTPXClient] = None

    @property
    def _cfg(self):
        return self._settings.stripe

    @property
    def is_configured(self) -> bool:
        return bool(self._cfg.secret_key)

    @property
    def webhook_secret(self) -> Optional[str]:
        return self._cfg.webhook_secret

    def fee_schedule(self, currency: Optional[str] = None) -> FeeSchedule:
        return stripe_fee_schedule(currency)

    # ------------------------------------------------------------------
    # SDK
    # ------------------------------------------------------------------
    def _stripe(self) -> stripe.StripeClient:
        if self._sdk is None:
            self._sdk_http = stripe.HTTPXClient(timeout=self.timeouts)
            self._sdk = stripe.StripeClient(
                self._cfg.secret_key,
                base_addresses={"api": self._cfg.api_url},
                max_network_retries=0,
                http_client=self._sdk_http,
            )
        return self._sdk

    async def _call(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self._timeouts_cfg.total)
        except asyncio.TimeoutError as exc:
            raise PaymentNetworkError(
                f"stripe {operation} timed out",
                provider=self.provider,
            ) from exc
        except stripe.StripeError as exc:
            details = {"status_code": exc.http_status} if exc.http_status else None
            raise PaymentNetworkError(
                f"stripe {operation} failed: {exc.user_message or type(exc).__name__}",
                provider=self.provider,
                details=details,
            ) from exc

    async def aclose(self) -> None:
        try:
            if self._sdk_http is not None:
                await self._sdk_http.close_async()
        finally:
            if self._sdk_http is not None:
                self._sdk_http = None
                self._sdk = None
            await super().aclose()

    # ------------------------------------------------------------------
    # Payment intents
    # ------------------------------------------------------------------
    def _mock_payment(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        intent_id = self._mock_id("pi", req)
        return PaymentIntentResult(
            success=True,
            provider=self.provider,
            gateway_payment_id=intent_id,
            client_secret=f"{intent_id}_secret_mock",
            redirect_url=self._mock_redirect(intent_id, req),
            transaction_id=intent_id,
            publishable_key=self._cfg.publishable_key,
            is_mock=True,
        )

    async def _create_remote(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        params = {
            "amount": self.to_minor(req.amount, req.currency),
            "currency": req.currency.lower(),
            "description": req.description or f"Order {req.order_id}",
            "metadata": {
                "order_id": req.order_id,
                "customer_name": req.customer_name,
                "customer_email": req.customer_email,
            },
            "automatic_payment_methods": {"enabled": True},
            "receipt_email": req.customer_email,
        }
        intent = await self._call(
            "create",
            self._stripe().v1.payment_intents.create_async(
                params,
                {"idempotency_key": self._idempotency_key(req)},
            ),
        )
        intent_id = intent.get("id")
        if not intent_id:
            raise PaymentNetworkError(
                "stripe response is missing the payment intent id",
                provider=self.provider,
            )
        return PaymentIntentResult(
            success=True,
            provider=self.provider,
            gateway_payment_id=str(intent_id),
            client_secret=intent.get("client_secret"),
            transaction_id=str(intent_id),
            publishable_key=self._cfg.publishable_key,
        )

    def _mock_status(self, payment_id: str) -> PaymentStatusResult:
        return PaymentStatusResult(
            success=True,
            provider=self.provider,
            payment_id=payment_id,
            status="succeeded",
            canonical_status=self._canonical("succeeded"),
            transaction_id=payment_id,
            is_mock=True,
        )

    async def _status_remote(self, payment_id: str) -> PaymentStatusResult:
        intent = await self._call(
            "retrieve",
            self._stripe().v1.payment_intents.retrieve_async(payment_id),
        )
        status = str(intent.get("status") or "")
        currency = intent.get("currency")
        return PaymentStatusResult(
            success=True,
            provider=self.provider,
            payment_id=payment_id,
            status=status or None,
            canonical_status=self._canonical(status),
            transaction_id=str(intent.get("id") or payment_id),
            amount=self.from_minor(intent.get("amount"), currency),
            currency=str(currency).upper() if currency else None,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------
    def process_webhook(self, payload: dict[str, Any]) -> Optional[NormalizedWebhookResult]:
        event_type = str(payload.get("type") or "")
        if not event_type.startswith(self.event_prefix):
            self._log("payment_webhook_ignored", event_type=event_type or None)
            return None

        data = payload.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            obj = {}
        metadata = obj.get("metadata")
        order_id = metadata.get("order_id") if isinstance(metadata, dict) else None
        intent_id = obj.get("id")
        if not order_id or not intent_id:
            logger.warning(
                "payment_webhook_missing_fields",
                provider=self.provider,
                event_type=event_type,
                has_order_id=bool(order_id),
                has_transaction_id=bool(intent_id),
            )
            return None

        return NormalizedWebhookResult(
            provider=self.provider,
            order_id=str(order_id),
            canonical_status=self._canonical(str(obj.get("status") or "")),
            gateway_transaction_id=str(intent_id),
            amount=self.from_minor(obj.get("amount"), obj.get("currency")),
        )
