"""
Fixed-width checked integer arithmetic.

Ledger quantities are unsigned 64-bit (amounts, tallies, voting power) or
signed 64-bit (timestamps, durations). Intermediate products in reward and
quorum math use 128-bit width. Every helper raises instead of wrapping or
saturating.
"""

from .exceptions import (
    ArithmeticInvariantError,
    ArithmeticOverflowError,
    ArithmeticUnderflowError,
    ValidationError,
)

U8_MAX = 2 ** 8 - 1
U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1
I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1


def _unsigned_max(bits: int) -> int:
    return (1 << bits) - 1


def _check_range(value: int, bits: int, op: str) -> int:
    if value < 0:
        raise ArithmeticUnderflowError(f"{op} underflow: result {value} < 0")
    if value > _unsigned_max(bits):
        raise ArithmeticOverflowError(f"{op} overflow: result exceeds u{bits}")
    return value


def checked_add(a: int, b: int, bits: int = 64) -> int:
    return _check_range(a + b, bits, "add")


def checked_sub(a: int, b: int, bits: int = 64) -> int:
    return _check_range(a - b, bits, "sub")


def checked_mul(a: int, b: int, bits: int = 64) -> int:
    return _check_range(a * b, bits, "mul")


def checked_div(a: int, b: int, bits: int = 64) -> int:
    """Unsigned floor division; division by zero is an invariant violation."""
    if b == 0:
        raise ArithmeticInvariantError("division by zero")
    return _check_range(a // b, bits, "div")


def checked_add_i64(a: int, b: int) -> int:
    """Signed 64-bit addition, used for timestamp + duration."""
    result = a + b
    if result < I64_MIN or result > I64_MAX:
        raise ArithmeticOverflowError("add overflow: result exceeds i64")
    return result


def require_u64(value, name: str) -> int:
    """Validate a caller-supplied unsigned 64-bit integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise ValidationError(f"{name} out of u64 range: {value}")
    return value


def require_i64(value, name: str) -> int:
    """Validate a caller-supplied signed 64-bit integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < I64_MIN or value > I64_MAX:
        raise ValidationError(f"{name} out of i64 range: {value}")
    return value
