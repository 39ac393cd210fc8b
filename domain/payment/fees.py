"""
Gateway fee formulas.

Pure functions: ``fee = round2(amount * rate + fixed)`` and
``total = amount + fee``. Rates are the processors' published list prices.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union


CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class FeeSchedule:
    rate: Decimal
    fixed: Decimal


@dataclass(frozen=True)
class FeeQuote:
    fee: Decimal
    total: Decimal


# Local processor, fixed fee in ILS
PAYPLUS_FEES = FeeSchedule(rate=Decimal("0.029"), fixed=Decimal("1.50"))

STRIPE_USD_FEES = FeeSchedule(rate=Decimal("0.029"), fixed=Decimal("0.30"))
STRIPE_DEFAULT_FEES = FeeSchedule(rate=Decimal("0.014"), fixed=Decimal("0.25"))


def _to_decimal(amount: Number) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    # str() keeps float literals such as 30.6 exact
    return Decimal(str(amount))


def calculate_fees(amount: Number, schedule: FeeSchedule) -> FeeQuote:
    value = _to_decimal(amount)
    fee = (value * schedule.rate + schedule.fixed).quantize(CENT, rounding=ROUND_HALF_UP)
    return FeeQuote(fee=fee, total=value + fee)


def stripe_fee_schedule(currency: Optional[str] = None) -> FeeSchedule:
    if (currency or "USD").upper() == "USD":
        return STRIPE_USD_FEES
    return STRIPE_DEFAULT_FEES
