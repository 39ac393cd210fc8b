from decimal import Decimal

import pytest

from application.services.payment_service import PaymentService
from core.settings import PaymentSettings
from domain.common.exceptions import DomainValidationException
from infrastructure.external.payments import PaymentGatewayRegistry, build_gateway_registry
from infrastructure.external.payments.exceptions import UnsupportedProviderError
from infrastructure.external.payments.stripe_client import StripeClient
from shared.codes.payment_codes import CanonicalStatus
from tests.fakes import FakePaymentIntents, fake_stripe_sdk


@pytest.fixture
def registry():
    return build_gateway_registry(PaymentSettings())


def _payload(**overrides):
    body = {
        "amount": "260.60",
        "currency": "ils",
        "orderId": "ord-1",
        "customerName": "Dana Levi",
        "customerEmail": "dana@example.com",
        "webhookUrl": "https://shop.example/payment/payplus/webhook",
    }
    body.update(overrides)
    return body


def test_registry_lookup_is_case_insensitive(registry):
    assert registry.names() == ["payplus", "stripe"]
    assert registry.get("Stripe").provider == "stripe"
    assert "PAYPLUS" in registry
    assert "paypal" not in registry


def test_unknown_provider_is_rejected(registry):
    with pytest.raises(UnsupportedProviderError) as exc_info:
        registry.get("paypal")
    assert exc_info.value.details["supported"] == ["payplus", "stripe"]


def test_registering_a_new_gateway_needs_no_other_changes():
    class AcmeClient(StripeClient):
        provider = "acme"

    registry = PaymentGatewayRegistry([AcmeClient(settings=PaymentSettings())])
    assert registry.get("acme").provider == "acme"


@pytest.mark.asyncio
async def test_registry_aclose_closes_all_clients(registry):
    gw = registry.get("payplus")
    async with gw.client():
        pass
    assert gw._client is not None
    await registry.aclose()
    assert gw._client is None


@pytest.mark.asyncio
async def test_service_creates_mock_payment_and_normalizes_currency(registry):
    svc = PaymentService(registry)
    result = await svc.create_payment("payplus", _payload())
    assert result.success and result.is_mock
    assert result.provider == "payplus"


@pytest.mark.asyncio
async def test_service_reports_missing_fields(registry):
    svc = PaymentService(registry)
    with pytest.raises(DomainValidationException) as exc_info:
        await svc.create_payment("stripe", _payload(customerEmail=None))
    assert exc_info.value.message == "Missing required fields"
    assert exc_info.value.field == "customerEmail"


@pytest.mark.asyncio
async def test_service_rejects_non_positive_amount(registry):
    svc = PaymentService(registry)
    with pytest.raises(DomainValidationException):
        await svc.create_payment("stripe", _payload(amount="0"))


@pytest.mark.asyncio
async def test_payplus_requires_webhook_url(registry):
    svc = PaymentService(registry)
    with pytest.raises(DomainValidationException) as exc_info:
        await svc.create_payment("payplus", _payload(webhookUrl=None))
    assert exc_info.value.field == "webhookUrl"
    # The card network does not need it
    result = await svc.create_payment("stripe", _payload(webhookUrl=None))
    assert result.success


@pytest.mark.asyncio
async def test_service_unknown_provider(registry):
    with pytest.raises(UnsupportedProviderError):
        await PaymentService(registry).create_payment("paypal", _payload())


def test_quote_fees(registry):
    quote = PaymentService(registry).quote_fees("payplus", Decimal("100"), "ils")
    assert quote.provider == "payplus"
    assert quote.currency == "ILS"
    assert quote.fee == Decimal("4.40")
    assert quote.total == Decimal("104.40")


@pytest.mark.asyncio
async def test_stripe_adapter_keeps_an_injected_sdk_on_close():
    sdk = fake_stripe_sdk(FakePaymentIntents())
    registry = build_gateway_registry(PaymentSettings(), stripe_sdk=sdk)
    gw = registry.get("stripe")
    await registry.aclose()
    assert gw._sdk is sdk


@pytest.mark.asyncio
async def test_service_status_query_uses_mock_without_credentials(registry):
    svc = PaymentService(registry)
    result = await svc.get_payment_status("payplus", " pp-1 ")
    assert result.success and result.is_mock
    assert result.payment_id == "pp-1"
    assert result.canonical_status == CanonicalStatus.SUCCESS


@pytest.mark.asyncio
async def test_service_status_query_requires_payment_id(registry):
    with pytest.raises(DomainValidationException) as exc_info:
        await PaymentService(registry).get_payment_status("stripe", "  ")
    assert exc_info.value.field == "paymentId"
