"""
Money helpers.
All naira amounts in the engine are Decimals held to the kobo (two places),
rounded half-up as the NRS assessment notices do.
"""

from decimal import Decimal, ROUND_HALF_UP

KOBO = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # via str so 0.1 stays 0.1
        return Decimal(str(value))
    return Decimal(value)


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(KOBO, rounding=ROUND_HALF_UP)


def non_negative(value) -> Decimal:
    """Missing or negative relief inputs count as zero."""
    amount = quantize(value)
    return amount if amount > 0 else ZERO


def percent(rate: Decimal) -> Decimal:
    return quantize(rate * 100)
