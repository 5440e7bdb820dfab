"""
Formatting helpers for receipts, settlement notes and reports.
Vietnamese style: dot for thousands, comma for decimals, đồng suffix.
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional


def num_vn(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number in Vietnamese style: dot for thousands, comma for
    decimals, insignificant decimals dropped.

    Examples:
        num_vn(1500) -> "1.500"
        num_vn(1500.5) -> "1.500,5"
        num_vn(185.00) -> "185"
        num_vn(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(value.replace(",", ".") if isinstance(value, str) else str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"
    if not num.is_finite():
        return "-"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals)
    if num == 0:
        return "0"

    integer_part, _, fraction = f"{abs(num):f}".partition('.')
    fraction = fraction.rstrip('0')
    grouped = f"{int(integer_part):,}".replace(',', '.')
    sign = '-' if num < 0 else ''
    return f"{sign}{grouped},{fraction}" if fraction else f"{sign}{grouped}"


def money_vn(value: Union[int, float, Decimal, str, None], symbol: str = '₫') -> str:
    """
    Format a money amount with the currency symbol.

    Examples:
        money_vn(1500000) -> "1.500.000 ₫"
        money_vn(0) -> "0 ₫"
    """
    formatted = num_vn(value)
    if formatted == "-":
        return formatted
    return f"{formatted} {symbol}" if symbol else formatted


def date_vn(value: Union[date, datetime, None]) -> str:
    """Format a date as DD/MM/YYYY ("-" when missing)."""
    if value is None:
        return "-"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d/%m/%Y")


def datetime_vn(value: Union[datetime, None], with_time: bool = True) -> str:
    """Format a datetime as DD/MM/YYYY HH:MM ("-" when missing)."""
    if value is None or not isinstance(value, datetime):
        return "-"

    if with_time:
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def short_ref(identifier: Optional[str], length: int = 6) -> str:
    """Trailing characters of an id, as printed on receipts (#123456)."""
    if not identifier:
        return "-"
    return identifier[-length:]
