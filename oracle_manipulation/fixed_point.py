"""
Single source of truth for fixed-point arithmetic.

All amounts and prices are integers scaled by WAD (10**18). Conversions from
human-readable values go through Decimal so no float rounding leaks in.

Width policy:
- Stored values must fit in an unsigned 256-bit word
- Intermediate products are computed at full width before dividing
- Any result outside [0, MAX_UINT256] raises ArithmeticOverflow (fatal)
"""

from decimal import Decimal, InvalidOperation, getcontext, localcontext
from typing import Union

from .exceptions import ArithmeticOverflow, InvalidAmount

# Set high precision for all decimal conversions
getcontext().prec = 80

WAD = 10**18
BPS_DENOMINATOR = 10_000
PERCENT = 100
MAX_UINT256 = 2**256 - 1

ROUND_DOWN = "down"
ROUND_UP = "up"

Number = Union[int, str, Decimal]


# ============================================================================
# Range guards
# ============================================================================


def check_uint(value: int, label: str = "value") -> int:
    """Return value unchanged if it fits in a uint256, else raise."""
    if value < 0 or value > MAX_UINT256:
        raise ArithmeticOverflow(
            f"{label} outside uint256 range", value=value, details={"label": label}
        )
    return value


def require_positive(amount: int, label: str = "amount") -> int:
    """Reject non-positive or non-integer amounts before any mutation."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{label} must be an integer, got {amount!r}", amount=amount)
    if amount <= 0:
        raise InvalidAmount(f"{label} must be positive, got {amount}", amount=amount)
    return check_uint(amount, label)


# ============================================================================
# Full-width multiply/divide
# ============================================================================


def mul_div(a: int, b: int, denominator: int, rounding: str = ROUND_DOWN) -> int:
    """
    Compute a * b / denominator without losing the high bits of a * b.

    Python integers are unbounded, so the product is always exact; the result
    is the only value that has to fit in 256 bits.

    Args:
        a: First factor
        b: Second factor
        denominator: Divisor (must be non-zero)
        rounding: ROUND_DOWN (floor) or ROUND_UP (ceiling)

    Raises:
        ArithmeticOverflow: If the quotient does not fit in a uint256
        ZeroDivisionError: If denominator is zero
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    check_uint(a, "mul_div factor")
    check_uint(b, "mul_div factor")
    product = a * b
    quotient, remainder = divmod(product, denominator)
    if rounding == ROUND_UP and remainder:
        quotient += 1
    return check_uint(quotient, "mul_div result")


def wad_mul(a: int, b: int, rounding: str = ROUND_DOWN) -> int:
    """Multiply two WAD values."""
    return mul_div(a, b, WAD, rounding)


def wad_div(a: int, b: int, rounding: str = ROUND_DOWN) -> int:
    """Divide two WAD values."""
    return mul_div(a, WAD, b, rounding)


def apply_bps(amount: int, bps: int, rounding: str = ROUND_DOWN) -> int:
    """Return amount * bps / 10000."""
    return mul_div(amount, bps, BPS_DENOMINATOR, rounding)


# ============================================================================
# Conversion helpers (ONLY place to convert between human units and WAD)
# ============================================================================


def to_wad(value: Number) -> int:
    """Convert a human-readable amount to WAD. "1.5" -> 1.5e18"""
    if isinstance(value, float):
        raise InvalidAmount(
            "floats are not accepted, pass a str or Decimal", amount=value
        )
    # Decimal contexts are per thread; pin the precision for this conversion
    with localcontext() as ctx:
        ctx.prec = 80
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmount(f"not a number: {value!r}", amount=value)
        if not parsed.is_finite() or parsed < 0:
            raise InvalidAmount(
                f"amount must be finite and non-negative, got {value}", amount=value
            )
        scaled = parsed * Decimal(WAD)
    if scaled != scaled.to_integral_value():
        raise InvalidAmount(f"{value} has more than 18 decimals", amount=value)
    return check_uint(int(scaled), "to_wad")


def from_wad(value: int) -> Decimal:
    """Convert a WAD integer to a Decimal in human units."""
    return Decimal(value) / Decimal(WAD)


def bps_to_pct(bps: int) -> Decimal:
    """Convert basis points to percent. 30 bps -> 0.30%"""
    return Decimal(bps) / Decimal(PERCENT)

