"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, Union, runtime_checkable

from application.dtos.payments import (
    NormalizedWebhookResult,
    PaymentIntentRequest,
    PaymentIntentResult,
    PaymentStatusResult,
)
from domain.payment.fees import FeeQuote


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment processors.

    Expected failures are returned as values, never raised:
    ``create_payment`` and ``get_payment_status`` report network problems
    via ``success=False``, ``verify_webhook_signature`` returns a bool and
    ``process_webhook`` returns ``None`` for payloads it does not handle.
    """

    provider: str
    # Request header carrying the webhook signature
    signature_header_name: str
    # The local processor needs a server-to-server webhook url on create
    requires_webhook_url: bool

    @property
    def is_configured(self) -> bool: ...

    async def create_payment(self, req: PaymentIntentRequest) -> PaymentIntentResult: ...

    async def get_payment_status(self, payment_id: str) -> PaymentStatusResult: ...

    def verify_webhook_signature(self, raw_body: bytes, signature_header: Optional[str]) -> bool: ...

    def process_webhook(self, payload: dict[str, Any]) -> Optional[NormalizedWebhookResult]: ...

    def calculate_fees(
        self,
        amount: Union[Decimal, int, float, str],
        currency: Optional[str] = None,
    ) -> FeeQuote: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class PaymentGatewayResolver(Protocol):
    """Looks up the gateway registered for a payment method."""

    def get(self, provider: Optional[str]) -> PaymentGateway: ...

    def names(self) -> list[str]: ...
