"""
Money Parsing Module

Amounts travel as Decimal. Inputs may arrive as numbers or strings from
JSON bodies and form fields.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError


def parse_amount(value: Any, field: str = "amount", allow_zero: bool = False,
                 allow_negative: bool = False) -> Decimal:
    """
    Parse a finite decimal amount.
    
    Args:
        value: Raw input (int, float, str or Decimal)
        field: Field name used in the error message
        allow_zero: Accept zero
        allow_negative: Accept negative values (and zero)
        
    Raises:
        ValidationError: If the value is missing, not numeric, NaN/infinite
            or outside the allowed sign
    """
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationError(f"{field} is required and must be a valid number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a valid number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a valid number")
    
    if allow_negative:
        return amount
    if amount < 0 or (amount == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ValidationError(f"{field} must be a valid {qualifier} number")
    return amount
