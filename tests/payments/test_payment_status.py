from decimal import Decimal

import httpx
import pytest
import stripe

from core.settings import PaymentSettings, PayPlusSettings, StripeSettings
from infrastructure.external.payments.payplus_client import PayPlusClient
from infrastructure.external.payments.stripe_client import StripeClient
from shared.codes.payment_codes import CanonicalStatus
from tests.fakes import FakePaymentIntents, fake_stripe_sdk


def _payplus(handler) -> PayPlusClient:
    cfg = PaymentSettings(payplus=PayPlusSettings(
        api_url="https://payplus.test",
        secret_key="pp_secret",
        public_key="pp_public",
    ))
    return PayPlusClient(settings=cfg, transport=httpx.MockTransport(handler))


def _stripe(intents: FakePaymentIntents) -> StripeClient:
    cfg = PaymentSettings(stripe=StripeSettings(secret_key="sk_test_1"))
    return StripeClient(settings=cfg, sdk=fake_stripe_sdk(intents))


@pytest.mark.asyncio
async def test_payplus_status_reads_transaction():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"status": "completed", "transaction_id": 777, "amount": 26060})

    gw = _payplus(handler)
    result = await gw.get_payment_status("pp-1")
    await gw.aclose()

    assert result.success and not result.is_mock
    assert result.status == "completed"
    assert result.canonical_status == CanonicalStatus.SUCCESS
    assert result.transaction_id == "777"
    assert result.amount == Decimal("260.60")
    assert result.currency == "ILS"
    assert seen == {
        "method": "GET",
        "url": "https://payplus.test/api/v1.0/Transactions/pp-1",
        "auth": "Bearer pp_secret",
    }


@pytest.mark.asyncio
async def test_payplus_unknown_status_is_pending():
    gw = _payplus(lambda request: httpx.Response(200, json={"status": "cancelled"}))
    result = await gw.get_payment_status("pp-1")
    await gw.aclose()
    assert result.canonical_status == CanonicalStatus.PENDING
    assert result.amount is None


@pytest.mark.asyncio
async def test_payplus_status_failures_are_network_errors():
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    for handler in (
        lambda request: httpx.Response(404, json={"message": "not found"}),
        lambda request: httpx.Response(200, json={"transaction_id": "t"}),
        refused,
    ):
        gw = _payplus(handler)
        result = await gw.get_payment_status("pp-1")
        await gw.aclose()
        assert not result.success
        assert result.payment_id == "pp-1"
        assert result.error.startswith("NETWORK_ERROR")


@pytest.mark.asyncio
async def test_unconfigured_payplus_status_is_mocked():
    gw = PayPlusClient(settings=PaymentSettings())
    first = await gw.get_payment_status("mock_pp_1")
    again = await gw.get_payment_status("mock_pp_1")

    assert first.is_mock
    assert first.canonical_status == CanonicalStatus.SUCCESS
    assert first.transaction_id.startswith("mock_txn_")
    assert first.transaction_id == again.transaction_id


@pytest.mark.asyncio
async def test_stripe_status_retrieves_intent():
    intents = FakePaymentIntents(intent={
        "id": "pi_9",
        "status": "requires_payment_method",
        "amount": 1050,
        "currency": "usd",
    })
    result = await _stripe(intents).get_payment_status("pi_9")

    assert result.success
    assert result.status == "requires_payment_method"
    assert result.canonical_status == CanonicalStatus.PENDING
    assert result.amount == Decimal("10.50")
    assert result.currency == "USD"
    assert intents.calls[0][:2] == ("retrieve", "pi_9")


@pytest.mark.asyncio
async def test_stripe_status_error_is_network_error():
    intents = FakePaymentIntents(error=stripe.InvalidRequestError("No such payment_intent", "intent", http_status=404))
    result = await _stripe(intents).get_payment_status("pi_missing")

    assert not result.success
    assert result.error.startswith("NETWORK_ERROR")


@pytest.mark.asyncio
async def test_unconfigured_stripe_status_is_mocked():
    result = await StripeClient(settings=PaymentSettings()).get_payment_status("mock_pi_1")
    assert result.is_mock
    assert result.status == "succeeded"
    assert result.canonical_status == CanonicalStatus.SUCCESS
