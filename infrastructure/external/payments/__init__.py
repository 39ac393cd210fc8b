"""
Registry of payment gateway clients keyed by payment method.

Clients are built once at process start and injected; adding a processor
means registering another client, with no changes to services or routes.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

import httpx

from application.ports.payment_gateway import PaymentGateway
from core.settings import PaymentSettings, payment_settings
from infrastructure.external.payments.exceptions import UnsupportedProviderError


class PaymentGatewayRegistry:
    def __init__(self, gateways: Iterable[PaymentGateway] = ()) -> None:
        self._gateways: dict[str, PaymentGateway] = {}
        for gateway in gateways:
            self.register(gateway)

    def register(self, gateway: PaymentGateway) -> None:
        self._gateways[gateway.provider.lower()] = gateway

    def get(self, provider: Optional[str]) -> PaymentGateway:
        gateway = self._gateways.get((provider or "").lower())
        if gateway is None:
            raise UnsupportedProviderError(str(provider), supported=self.names())
        return gateway

    def __contains__(self, provider: object) -> bool:
        return isinstance(provider, str) and provider.lower() in self._gateways

    def names(self) -> list[str]:
        return sorted(self._gateways)

    async def aclose(self) -> None:
        for gateway in self._gateways.values():
            await gateway.aclose()


def build_gateway_registry(
    settings: Optional[PaymentSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    stripe_sdk: Optional[Any] = None,
) -> PaymentGatewayRegistry:
    """Build the default gateways.

    ``transport`` reaches the httpx-based clients; ``stripe_sdk`` replaces the
    SDK client the Stripe adapter would otherwise build from settings.
    """
    from .payplus_client import PayPlusClient
    from .stripe_client import StripeClient

    cfg = settings or payment_settings
    return PaymentGatewayRegistry([
        StripeClient(settings=cfg, sdk=stripe_sdk),
        PayPlusClient(settings=cfg, transport=transport),
    ])


__all__ = ["PaymentGatewayRegistry", "build_gateway_registry"]
