from decimal import Decimal

import pytest

from core.settings import PaymentSettings
from domain.payment.fees import PAYPLUS_FEES, calculate_fees
from infrastructure.external.payments.payplus_client import PayPlusClient
from infrastructure.external.payments.stripe_client import StripeClient


@pytest.fixture
def cfg():
    return PaymentSettings()


def test_payplus_fee_is_rate_plus_fixed(cfg):
    quote = PayPlusClient(settings=cfg).calculate_fees(Decimal("100"))
    assert quote.fee == Decimal("4.40")
    assert quote.total == Decimal("104.40")


def test_stripe_usd_and_other_currency_schedules(cfg):
    gw = StripeClient(settings=cfg)
    usd = gw.calculate_fees(Decimal("100"), "usd")
    eur = gw.calculate_fees(Decimal("100"), "EUR")
    assert usd.fee == Decimal("3.20")
    assert eur.fee == Decimal("1.65")
    # No currency falls back to the USD list price
    assert gw.calculate_fees(Decimal("100")).fee == Decimal("3.20")


def test_fee_rounds_half_up(cfg):
    # 5 * 0.029 + 0.30 = 0.445
    quote = StripeClient(settings=cfg).calculate_fees(Decimal("5"), "USD")
    assert quote.fee == Decimal("0.45")
    assert quote.total == Decimal("5.45")


def test_float_amount_is_read_through_str():
    quote = calculate_fees(30.6, PAYPLUS_FEES)
    # 30.6 * 0.029 + 1.50 = 2.3874
    assert quote.fee == Decimal("2.39")
    assert quote.total == Decimal("32.99")


def test_fee_quote_is_deterministic(cfg):
    gw = PayPlusClient(settings=cfg)
    assert gw.calculate_fees("260.60") == gw.calculate_fees(Decimal("260.60"))
