from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Annotated

from pydantic import AfterValidator, PlainSerializer

CENTS = Decimal("0.01")
GRAMS = Decimal("0.001")


def to_money(value) -> Decimal:
    """
    Normalise any numeric input to a two-decimal amount.
    Floats go through str() so 0.1 stays 0.10, not 0.1000000000000000055.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_quantity(value) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(GRAMS, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def floor_int(value: Decimal) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_FLOOR))


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return to_money(amount * percent / Decimal("100"))


def safe_ratio(numerator, denominator) -> Decimal:
    if not denominator:
        return Decimal("0.00")
    return to_money(Decimal(numerator) / Decimal(denominator))


# JSON sees plain numbers, python code sees exact decimals
Money = Annotated[
    Decimal,
    AfterValidator(to_money),
    PlainSerializer(float, return_type=float, when_used="json"),
]

Quantity = Annotated[
    Decimal,
    AfterValidator(to_quantity),
    PlainSerializer(float, return_type=float, when_used="json"),
]
