"""Number parsing utilities for amounts and quantities coming from clients."""
import re
from decimal import Decimal, InvalidOperation

from poultry_ledger.exceptions import ValidationError

# 1.200.000 or 1.200.000,50
VN_GROUPED_PATTERN = re.compile(r"^\d{1,3}(?:\.\d{3})+(?:,\d+)?$")
PLAIN_NUMBER_PATTERN = re.compile(r"^\d+(?:[.,]\d+)?$")


def parse_money(value, field: str = 'amount', allow_negative: bool = False) -> Decimal:
    """
    Parse a money value to Decimal.

    Accepts ints, Decimals, floats (through their string form) and strings
    either plain ("150000", "150000.50") or grouped Vietnamese style
    ("1.500.000", "1.500.000,50").

    Raises:
        ValidationError: if the value is missing, malformed or negative.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f'{field} is required')

    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number')

    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(' ', '').replace('₫', '')
        negative = cleaned.startswith('-')
        if negative:
            cleaned = cleaned[1:]

        if VN_GROUPED_PATTERN.match(cleaned):
            normalized = cleaned.replace('.', '').replace(',', '.')
        elif PLAIN_NUMBER_PATTERN.match(cleaned):
            normalized = cleaned.replace(',', '.')
        else:
            raise ValidationError(f'{field} has an invalid format: {value!r}')

        try:
            amount = Decimal(normalized)
        except (InvalidOperation, ValueError):
            raise ValidationError(f'{field} has an invalid format: {value!r}')
        if negative:
            amount = -amount
    else:
        raise ValidationError(f'{field} must be a number')

    if not amount.is_finite():
        raise ValidationError(f'{field} must be a finite number')

    if amount < 0 and not allow_negative:
        raise ValidationError(f'{field} cannot be negative')

    return amount.quantize(Decimal('0.01'))


def parse_quantity(value, field: str = 'quantity', minimum: int = 1) -> int:
    """
    Parse a head-count quantity (whole animals).

    Raises:
        ValidationError: if the value is not an integer >= minimum.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field} is required')

    try:
        if isinstance(value, str):
            value = value.strip()
        quantity = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{field} must be a whole number')

    if not quantity.is_finite() or quantity != quantity.to_integral_value():
        raise ValidationError(f'{field} must be a whole number')

    quantity = int(quantity)
    if quantity < minimum:
        raise ValidationError(f'{field} must be at least {minimum}')
    return quantity
