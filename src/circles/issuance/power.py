"""Overflow-checked integer exponentiation.

power() computes base ** exponent by repeated squaring. Every product,
both the accumulator update and the squaring of the running base, is
compared against a fixed bound (MAX_UINT256 by default). Exceeding it
raises ArithmeticOverflowError; the result never wraps or saturates.

The running base is only squared while exponent bits remain, so every
squared value is a factor of the final result. A power that fits the
bound therefore never trips the check on an intermediate value, and a
power that does not fit fails after at most log2(bound) squarings, even
for exponents in the hundreds of millions.
"""

from __future__ import annotations

from circles.errors import ArithmeticOverflowError
from circles.models.hub import MAX_UINT256


def _require_unsigned(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def checked_mul(a: int, b: int, bound: int = MAX_UINT256) -> int:
    """Multiply two unsigned ints, raising if the product exceeds bound."""
    product = a * b
    if product > bound:
        raise ArithmeticOverflowError(
            f"Multiplication overflow: {a} * {b} exceeds {bound.bit_length()}-bit bound"
        )
    return product


def power(base: int, exponent: int, bound: int = MAX_UINT256) -> int:
    """Return base ** exponent, raising ArithmeticOverflowError past bound.

    power(b, 0) is 1 for every b, including 0.
    """
    _require_unsigned("base", base)
    _require_unsigned("exponent", exponent)
    if base > bound:
        raise ArithmeticOverflowError(f"Base {base} exceeds bound")

    if exponent == 0:
        return 1
    if base in (0, 1):
        return base

    result = 1
    while True:
        if exponent & 1:
            result = checked_mul(result, base, bound)
        exponent >>= 1
        if not exponent:
            return result
        base = checked_mul(base, base, bound)
