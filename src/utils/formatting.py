from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
UNIT_STEP = Decimal("0.00000001")


def quantize_currency(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def quantize_units(value: Decimal) -> Decimal:
    return value.quantize(UNIT_STEP, rounding=ROUND_HALF_UP)


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_currency(value: Decimal) -> str:
    return f"{quantize_currency(value):.2f}"


def format_units(value: Decimal) -> str:
    return f"{quantize_units(value):.8f}"
