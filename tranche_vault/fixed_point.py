"""
fixed_point.py - Checked Integer Arithmetic for Fixed-Point USD

Every quantity in the engine is an unsigned 128-bit fixed-point integer.
Python integers never overflow, so the 128-bit contract is enforced here:
each helper range-checks its result and raises MathOverflow instead of
returning a value the ledger could not store.

Rounding policy:
    All division truncates toward zero (floor for non-negative operands).
    Nothing in the engine rounds up, so shares are never over-minted and
    yield is never over-credited. The cost is at most one unit of dust
    per operation.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_DOWN, localcontext

from .core import FP_SCALE, U128_MAX, InvalidAmount, MathOverflow


def checked_add(a: int, b: int) -> int:
    """Return a + b, raising MathOverflow above U128_MAX."""
    result = a + b
    if result > U128_MAX:
        raise MathOverflow(f"addition overflow: {a} + {b}")
    return result


def checked_sub(a: int, b: int) -> int:
    """Return a - b, raising MathOverflow below zero."""
    if b > a:
        raise MathOverflow(f"subtraction underflow: {a} - {b}")
    return a - b


def checked_mul(a: int, b: int) -> int:
    """Return a * b, raising MathOverflow above U128_MAX."""
    result = a * b
    if result > U128_MAX:
        raise MathOverflow(f"multiplication overflow: {a} * {b}")
    return result


def checked_mul_div(a: int, b: int, c: int) -> int:
    """
    Compute floor(a * b / c) with 128-bit checked intermediates.

    The zero divisor check runs before the multiplication, so a zero
    divisor reports InvalidAmount even when a * b would also overflow.

    Args:
        a: First factor
        b: Second factor
        c: Divisor

    Returns:
        The truncated quotient

    Raises:
        InvalidAmount: If c is zero
        MathOverflow: If a * b exceeds U128_MAX
    """
    if c == 0:
        raise InvalidAmount("division by zero")
    return checked_mul(a, b) // c


def require_amount(amount: int) -> int:
    """
    Validate an externally supplied fixed-point amount.

    Raises:
        InvalidAmount: If amount is not an int, or is zero or negative
        MathOverflow: If amount does not fit in 128 bits
    """
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(f"amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"amount must be positive, got {amount}")
    if amount > U128_MAX:
        raise MathOverflow(f"amount exceeds 128 bits: {amount}")
    return amount


# ============================================================================
# DECIMAL CONVERSION
# ============================================================================

# 39 significant digits cover U128_MAX; the default context keeps only 28.
_CONVERSION_PRECISION = 60


def to_fixed(value) -> int:
    """
    Convert a USD value to raw fixed-point units, truncating toward zero.

    Accepts Decimal, int or str. Floats are converted through str() so that
    0.1 becomes exactly 100_000_000.

    Example:
        to_fixed(Decimal("1.5"))  # 1_500_000_000
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value.is_nan() or value.is_infinite():
        raise ValueError(f"cannot convert {value} to fixed point")
    with localcontext() as ctx:
        ctx.prec = _CONVERSION_PRECISION
        return int((value * FP_SCALE).to_integral_value(rounding=ROUND_DOWN))


def from_fixed(raw: int) -> Decimal:
    """Convert raw fixed-point units back to an exact Decimal USD value."""
    with localcontext() as ctx:
        ctx.prec = _CONVERSION_PRECISION
        return Decimal(raw) / Decimal(FP_SCALE)


def format_usd(raw: int) -> str:
    """Format raw fixed-point units as a dollar string with 2 decimals (display only)."""
    with localcontext() as ctx:
        ctx.prec = _CONVERSION_PRECISION
        return f"${from_fixed(raw).quantize(Decimal('0.01'), rounding=ROUND_DOWN):,}"
