"""
Base payment client implementing shared concerns: http, signatures, logging,
mock fallback and status mapping.

Concrete providers subclass and implement provider-specific logic.
"""
from __future__ import annotations

import asyncio
import hashlib
import hmac
from contextlib import asynccontextmanager
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional, Union
from urllib.parse import urlencode

import httpx

from core.logging_config import get_logger
from core.settings import PaymentSettings
from application.dtos.payments import (
    NormalizedWebhookResult,
    PaymentIntentRequest,
    PaymentIntentResult,
    PaymentStatusResult,
)
from application.ports.payment_gateway import PaymentGateway
from domain.payment.fees import FeeQuote, FeeSchedule, calculate_fees
from infrastructure.external.payments.exceptions import PaymentNetworkError
from shared.codes.payment_codes import PROVIDER_STATUS_TO_CANONICAL, CanonicalStatus


logger = get_logger(__name__)

# Currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})


class BasePaymentClient(PaymentGateway):
    provider: str = "base"
    signature_header_name: str = "x-signature"
    requires_webhook_url: bool = False
    # Prepended to the hex digest in the signature header
    signature_prefix: str = ""

    def __init__(
        self,
        *,
        settings: PaymentSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeouts_cfg = settings.timeouts
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------
    @property
    def is_configured(self) -> bool:
        raise NotImplementedError

    @property
    def webhook_secret(self) -> Optional[str]:
        raise NotImplementedError

    def fee_schedule(self, currency: Optional[str] = None) -> FeeSchedule:
        raise NotImplementedError

    def _mock_payment(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        raise NotImplementedError

    async def _create_remote(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        raise NotImplementedError

    def _mock_status(self, payment_id: str) -> PaymentStatusResult:
        raise NotImplementedError

    async def _status_remote(self, payment_id: str) -> PaymentStatusResult:
        raise NotImplementedError

    def process_webhook(self, payload: dict[str, Any]) -> Optional[NormalizedWebhookResult]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg.connect,
            read=self._timeouts_cfg.read,
            write=self._timeouts_cfg.write,
            timeout=self._timeouts_cfg.total,
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Single attempt bounded by the total timeout; returns the JSON body."""
        try:
            async with self.client() as client:
                resp = await asyncio.wait_for(
                    client.request(method, url, json=json, headers=headers),
                    timeout=self._timeouts_cfg.total,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise PaymentNetworkError(
                f"{self.provider} request timed out",
                provider=self.provider,
            ) from exc
        except httpx.HTTPError as exc:
            raise PaymentNetworkError(
                f"{self.provider} request failed: {type(exc).__name__}",
                provider=self.provider,
            ) from exc

        if not resp.is_success:
            raise PaymentNetworkError(
                f"{self.provider} responded {resp.status_code}",
                provider=self.provider,
                details={"status_code": resp.status_code},
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise PaymentNetworkError(
                f"{self.provider} returned a non-JSON response",
                provider=self.provider,
            ) from exc
        if not isinstance(body, dict):
            raise PaymentNetworkError(
                f"{self.provider} returned an unexpected response",
                provider=self.provider,
            )
        return body

    # ------------------------------------------------------------------
    # Gateway operations
    # ------------------------------------------------------------------
    async def create_payment(self, req: PaymentIntentRequest) -> PaymentIntentResult:
        if not self.is_configured:
            result = self._mock_payment(req)
            self._log(
                "payment_mock_fallback",
                order_id=req.order_id,
                gateway_payment_id=result.gateway_payment_id,
            )
            return result
        try:
            result = await self._create_remote(req)
        except PaymentNetworkError as exc:
            logger.warning(
                "payment_create_network_error",
                provider=self.provider,
                order_id=req.order_id,
                error=exc.message,
                **{k: v for k, v in (exc.details or {}).items() if k != "provider"},
            )
            return PaymentIntentResult.network_error(self.provider, exc.message)
        self._log(
            "payment_create_response",
            order_id=req.order_id,
            gateway_payment_id=result.gateway_payment_id,
        )
        return result

    async def get_payment_status(self, payment_id: str) -> PaymentStatusResult:
        if not self.is_configured:
            result = self._mock_status(payment_id)
            self._log("payment_status_mock_fallback", payment_id=payment_id)
            return result
        try:
            result = await self._status_remote(payment_id)
        except PaymentNetworkError as exc:
            logger.warning(
                "payment_status_network_error",
                provider=self.provider,
                payment_id=payment_id,
                error=exc.message,
                **{k: v for k, v in (exc.details or {}).items() if k != "provider"},
            )
            return PaymentStatusResult.network_error(self.provider, payment_id, exc.message)
        self._log(
            "payment_status_response",
            payment_id=payment_id,
            status=result.status,
            canonical_status=result.canonical_status.value if result.canonical_status else None,
        )
        return result

    def sign_payload(self, raw_body: bytes, secret: str) -> str:
        digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
        return f"{self.signature_prefix}{digest}"

    def verify_webhook_signature(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        secret = self.webhook_secret
        if not secret:
            accepted = self._settings.webhook.allow_unsigned_without_secret
            logger.warning(
                "payment_webhook_secret_missing",
                provider=self.provider,
                accepted=accepted,
            )
            return accepted
        if not signature_header:
            return False
        expected = self.sign_payload(raw_body, secret)
        return hmac.compare_digest(
            expected.encode("utf-8"),
            signature_header.strip().encode("utf-8"),
        )

    def calculate_fees(
        self,
        amount: Union[Decimal, int, float, str],
        currency: Optional[str] = None,
    ) -> FeeQuote:
        return calculate_fees(amount, self.fee_schedule(currency))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _canonical(self, provider_status: str) -> CanonicalStatus:
        mapping = PROVIDER_STATUS_TO_CANONICAL.get(self.provider, {})
        return mapping.get(provider_status, CanonicalStatus.PENDING)

    @staticmethod
    def to_minor(amount: Decimal, currency: str) -> int:
        exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
        scaled = Decimal(amount) * (Decimal(10) ** exponent)
        return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    @staticmethod
    def from_minor(value: Any, currency: Optional[str]) -> Optional[Decimal]:
        if value is None or isinstance(value, bool):
            return None
        try:
            minor = Decimal(str(value))
        except InvalidOperation:
            return None
        if not minor.is_finite():
            return None
        exponent = 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2
        return minor / (Decimal(10) ** exponent)

    def _mock_id(self, kind: str, req: PaymentIntentRequest) -> str:
        # Deterministic per (provider, order, amount)
        return self._mock_token(kind, req.order_id, f"{Decimal(req.amount):.2f}")

    def _mock_token(self, kind: str, *parts: str) -> str:
        base = "|".join((self.provider, *parts))
        return f"mock_{kind}_{hashlib.sha256(base.encode('utf-8')).hexdigest()[:16]}"

    def _mock_redirect(self, payment_id: str, req: PaymentIntentRequest) -> str:
        query = urlencode({"payment_id": payment_id, "amount": f"{Decimal(req.amount):.2f}"})
        return f"{self._settings.app_url.rstrip('/')}/checkout/payment/{self.provider}/mock?{query}"

    @staticmethod
    def _idempotency_key(req: PaymentIntentRequest) -> str:
        # Stable key derived from business identifiers (no timestamp)
        base = f"create|{req.order_id}|{Decimal(req.amount):.2f}|{req.currency}"
        return hashlib.sha256(base.encode("utf-8")).hexdigest()

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
