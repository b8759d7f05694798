from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Maximum price: 9,999,999.99
MAX_AMOUNT = Decimal("9999999.99")


def to_money(value) -> Decimal:
    """Quantize to two decimals, half-up. Floats go through str() to avoid binary noise."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, field: str, *, allow_zero: bool = True) -> Decimal:
    """Parse a client-supplied currency amount."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return to_money(amount)


def parse_rate(value, field: str) -> Decimal:
    """Parse a proportion in [0, 1] (tax rate, discount rate)."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValidationError(f"{field} must be between 0 and 1")
    return rate


def parse_percentage(value, field: str) -> Decimal:
    """Parse a percentage in [0, 100]."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        pct = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct


def format_money(value) -> str | None:
    """Serialize a stored amount as a fixed two-decimal string."""
    if value is None:
        return None
    return f"{to_money(value):.2f}"
