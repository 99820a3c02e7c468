"""
Checked unsigned-integer helpers.

All ledger amounts are unsigned 64-bit integers. Python integers never wrap,
so these helpers enforce the range explicitly and raise
:class:`IntegerOverflowError` instead of silently growing past it.

- "checked" variants raise on overflow/underflow.
- ``mul_div_down`` keeps a wide intermediate and only checks the result.
"""

from __future__ import annotations

from icovault.core.constants import U64_MAX
from icovault.core.exceptions import IntegerOverflowError, InvalidAmountError


def require_u64(*values: int) -> None:
    """Raise if any value is not an int in [0, U64_MAX]."""
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidAmountError(f"Amount must be an integer, got {type(value).__name__}")
        if value < 0 or value > U64_MAX:
            raise IntegerOverflowError(f"Value {value} is outside the u64 range")


def require_positive_amount(amount: int) -> None:
    """Amounts moved by an operation must be strictly positive u64 values."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmountError("the amount must be strictly greater than zero")
    require_u64(amount)


def checked_add(x: int, y: int) -> int:
    require_u64(x, y)
    result = x + y
    if result > U64_MAX:
        raise IntegerOverflowError(f"{x} + {y} overflows u64")
    return result


def checked_sub(x: int, y: int) -> int:
    require_u64(x, y)
    if y > x:
        raise IntegerOverflowError(f"{x} - {y} underflows u64")
    return x - y
def mul_div_down(x: int, y: int, d: int) -> int:
    """floor(x * y / d) computed without intermediate overflow."""
    require_u64(x, y)
    if d <= 0:
        raise IntegerOverflowError("division by zero")
    result = (x * y) // d
    if result > U64_MAX:
        raise IntegerOverflowError(f"{x} * {y} / {d} overflows u64")
    return result
