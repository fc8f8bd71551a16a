from __future__ import annotations

from decimal import Decimal, InvalidOperation

from gigpay.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Money columns are Numeric(14, 2).
MAX_AMOUNT = Decimal("1e12")


def to_money(value, field: str = "amount") -> Decimal:
    """Parse a client-supplied amount; at most two decimal places."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} required")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if amount != quantized:
        raise ValidationError(f"{field} must have at most two decimal places")
    return quantized
