"""Fixed-point decimal helpers shared by every engine component.

All quantities, prices, fees and costs are ``decimal.Decimal``. Arithmetic runs
inside a dedicated context so results never depend on whatever context the
calling thread happens to carry, and division is always quantized to a fixed
scale with round-half-up.
"""

from __future__ import annotations

from decimal import (
    ROUND_HALF_UP,
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import ContextManager

from .errors import DivisionByZeroError

DIVISION_SCALE = 18

# Largest accepted order of magnitude. Products of two such values still fit
# the engine precision after quantizing to DIVISION_SCALE.
MAX_ADJUSTED_EXPONENT = 18

ENGINE_CONTEXT = Context(
    prec=60,
    rounding=ROUND_HALF_UP,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)

ZERO = Decimal("0")


def engine_context() -> ContextManager[Context]:
    """Return a context manager activating a private copy of ``ENGINE_CONTEXT``."""

    return localcontext(ENGINE_CONTEXT)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert ``value`` to a finite Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather than
    its binary expansion.
    """

    if isinstance(value, bool):
        raise ValueError("boolean is not a decimal value")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace("_", "")
        if not text:
            raise ValueError("empty decimal string")
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"invalid decimal value: {value!r}") from exc
    else:
        raise ValueError(f"unsupported decimal type: {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"decimal value must be finite, got {value!r}")
    if result and result.adjusted() > MAX_ADJUSTED_EXPONENT:
        raise ValueError(f"decimal value is out of range: {value!r}")
    return result


def quantize(value: Decimal, scale: int = DIVISION_SCALE) -> Decimal:
    """Round ``value`` half-up to ``scale`` fractional digits."""

    with engine_context():
        return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)


def divide(numerator: Decimal, denominator: Decimal, scale: int = DIVISION_SCALE) -> Decimal:
    """Divide and quantize; a zero denominator raises ``DivisionByZeroError``."""

    if denominator == 0:
        raise DivisionByZeroError(f"cannot divide {numerator} by zero")
    with engine_context():
        return quantize(numerator / denominator, scale)


def is_zero(value: Decimal) -> bool:
    return value == ZERO


def is_negative(value: Decimal) -> bool:
    return value < ZERO


def is_positive(value: Decimal) -> bool:
    return value > ZERO


def format_decimal(value: Decimal) -> str:
    """Render ``value`` as plain fixed-point text without exponent notation."""

    if value == 0:
        return "0"
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


__all__ = [
    "DIVISION_SCALE",
    "ENGINE_CONTEXT",
    "MAX_ADJUSTED_EXPONENT",
    "ZERO",
    "divide",
    "engine_context",
    "format_decimal",
    "is_negative",
    "is_positive",
    "is_zero",
    "quantize",
    "to_decimal",
]
