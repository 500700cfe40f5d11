"""
Decimal Money Helpers

All monetary values in the lending book are Decimal, rounded half-up to
cents. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any, Iterable
import re

from .exceptions import InvalidInputError

# High precision for intermediate amortization factors
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0')


def round_money(value: Decimal) -> Decimal:
    """Round a Decimal to cents using half-up rounding"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """
    Convert user input to Decimal, handling common formats

    Args:
        value: Decimal, int, float or string representation of a number
        field_name: Name used in the error message

    Returns:
        Decimal value

    Raises:
        InvalidInputError: If the value cannot be converted
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field_name} must be a number")
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field_name} must be a non-empty number")

    # Strip currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    # Both comma and dot - comma is the thousands separator
    if ',' in clean_value and '.' in clean_value:
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise InvalidInputError(f"Cannot convert {field_name} '{value}' to a decimal")


def sum_money(values: Iterable[Decimal]) -> Decimal:
    """Sum Decimal amounts and round the result to cents"""
    return round_money(sum(values, ZERO))


def format_money(amount: Decimal, symbol: str = "$") -> str:
    """Format for display"""
    return f"{symbol}{round_money(amount):,.2f}"
