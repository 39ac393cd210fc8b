from decimal import Decimal

import pytest

from core.settings import PaymentSettings
from infrastructure.external.payments.payplus_client import PayPlusClient
from infrastructure.external.payments.stripe_client import StripeClient
from shared.codes.payment_codes import CanonicalStatus


@pytest.fixture
def stripe_gw():
    return StripeClient(settings=PaymentSettings())


@pytest.fixture
def payplus_gw():
    return PayPlusClient(settings=PaymentSettings())


def _intent_event(event_type: str, status: str, **obj):
    body = {"id": "pi_123", "status": status, "amount": 26060, "currency": "ils",
            "metadata": {"order_id": "ord-1"}}
    body.update(obj)
    return {"id": "evt_1", "type": event_type, "data": {"object": body}}


@pytest.mark.parametrize(
    "event_type,status,expected",
    [
        ("payment_intent.succeeded", "succeeded", CanonicalStatus.SUCCESS),
        ("payment_intent.canceled", "canceled", CanonicalStatus.FAILED),
        ("payment_intent.processing", "processing", CanonicalStatus.PENDING),
        ("payment_intent.requires_action", "requires_action", CanonicalStatus.PENDING),
    ],
)
def test_stripe_intent_events_map_to_canonical(stripe_gw, event_type, status, expected):
    result = stripe_gw.process_webhook(_intent_event(event_type, status))
    assert result is not None
    assert result.canonical_status == expected
    assert result.order_id == "ord-1"
    assert result.gateway_transaction_id == "pi_123"
    assert result.amount == Decimal("260.60")


def test_stripe_ignores_non_intent_events(stripe_gw):
    assert stripe_gw.process_webhook({"type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}) is None
    assert stripe_gw.process_webhook({}) is None


def test_stripe_intent_without_order_metadata_is_ignored(stripe_gw):
    assert stripe_gw.process_webhook(_intent_event("payment_intent.succeeded", "succeeded", metadata={})) is None


def test_stripe_zero_decimal_currency(stripe_gw):
    result = stripe_gw.process_webhook(
        _intent_event("payment_intent.succeeded", "succeeded", amount=5000, currency="jpy")
    )
    assert result.amount == Decimal("5000")


@pytest.mark.parametrize(
    "status,expected",
    [
        ("completed", CanonicalStatus.SUCCESS),
        ("failed", CanonicalStatus.FAILED),
        ("authorized", CanonicalStatus.PENDING),
        ("", CanonicalStatus.PENDING),
    ],
)
def test_payplus_status_mapping(payplus_gw, status, expected):
    result = payplus_gw.process_webhook(
        {"status": status, "order_id": "ord-1", "transaction_id": "txn123", "amount": 26060}
    )
    assert result.canonical_status == expected
    assert result.gateway_transaction_id == "txn123"
    assert result.amount == Decimal("260.60")


def test_payplus_falls_back_to_payment_id(payplus_gw):
    result = payplus_gw.process_webhook({"status": "completed", "order_id": 42, "payment_id": 9001})
    assert result.order_id == "42"
    assert result.gateway_transaction_id == "9001"
    assert result.amount is None


def test_payplus_without_identifiers_is_ignored(payplus_gw):
    assert payplus_gw.process_webhook({"status": "completed", "transaction_id": "t"}) is None
    assert payplus_gw.process_webhook({"status": "completed", "order_id": "o"}) is None


@pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "sNaN", "lots"])
def test_payplus_non_finite_amount_is_dropped(payplus_gw, amount):
    result = payplus_gw.process_webhook(
        {"status": "completed", "order_id": "ord-1", "transaction_id": "t1", "amount": amount}
    )
    assert result.canonical_status == CanonicalStatus.SUCCESS
    assert result.amount is None


def test_stripe_non_finite_amount_is_dropped(stripe_gw):
    result = stripe_gw.process_webhook(
        _intent_event("payment_intent.succeeded", "succeeded", amount="Infinity")
    )
    assert result.gateway_transaction_id == "pi_123"
    assert result.amount is None
