"""
Formatting helpers for operator-facing messages.
Brazilian style: dot for thousands, comma for decimals.
"""
from decimal import Decimal, InvalidOperation
from datetime import datetime
from typing import Union, Optional


def _group_thousands(integer_part: str) -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def num_br(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number in Brazilian style, dropping insignificant decimals.

    Examples:
        num_br(1500) -> "1.500"
        num_br(2.5) -> "2,5"
        num_br(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals)

    sign = "-" if num < 0 else ""
    num_str = f"{abs(num):f}"
    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        if decimals is None:
            decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    integer_formatted = _group_thousands(integer_part)
    if decimal_part:
        return f"{sign}{integer_formatted},{decimal_part}"
    return f"{sign}{integer_formatted}"


def money_br(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount as Brazilian currency with exactly 2 decimals.

    Examples:
        money_br(1500) -> "R$ 1.500,00"
        money_br(Decimal('-3.5')) -> "-R$ 3,50"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")
    return f"{sign}R$ {_group_thousands(integer_part)},{decimal_part}"


def datetime_br(value: Union[datetime, None]) -> str:
    """DD/MM/YYYY HH:MM, or "-"."""
    if not isinstance(value, datetime):
        return "-"
    return value.strftime("%d/%m/%Y %H:%M")
