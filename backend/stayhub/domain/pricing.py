"""
Nightly-rate pricing.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def nights_between(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def total_price(nightly_rate: Decimal, check_in: date, check_out: date) -> Decimal:
    """nights x nightly rate, rounded to cents."""
    return (Decimal(nightly_rate) * nights_between(check_in, check_out)).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to the gateway's smallest currency unit (cents)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
