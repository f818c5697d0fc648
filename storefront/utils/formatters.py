"""
Formatting utilities for templates.
Numbers use Indonesian grouping: dot for thousands, comma for decimals.
"""
from decimal import Decimal, InvalidOperation
from datetime import datetime
from typing import Union, Optional

from flask import current_app, has_app_context


def num_id(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number Indonesian style.

    Examples:
        num_id(25000) -> "25.000"
        num_id(9500.0) -> "9.500"
        num_id(1500.75) -> "1.500,75"
        num_id(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if num == 0:
        return "0"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals)

    num_str = f"{num:f}"
    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        if decimals is None:
            decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    sign_str = ''
    if integer_part.startswith('-'):
        sign_str = '-'
        integer_part = integer_part[1:]

    # Reverse, group by 3, reverse again
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    integer_formatted = '.'.join(groups)[::-1]

    if decimal_part:
        return f"{sign_str}{integer_formatted},{decimal_part}"
    return f"{sign_str}{integer_formatted}"


def money(value: Union[int, float, Decimal, str, None], symbol: Optional[str] = None) -> str:
    """
    Format an amount with the store currency symbol.

    Examples:
        money(104500) -> "Rp 104.500"
    """
    if symbol is None:
        symbol = current_app.config.get('CURRENCY_SYMBOL', 'Rp') if has_app_context() else 'Rp'
    formatted = num_id(value)
    if formatted == "-":
        return formatted
    return f"{symbol} {formatted}"


def datetime_id(value: Union[datetime, str, None], with_time: bool = True) -> str:
    """Format a timestamp as DD/MM/YYYY HH:MM. ISO strings are accepted."""
    if value is None or value == "":
        return "-"

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return "-"

    if not isinstance(value, datetime):
        return "-"

    if with_time:
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def pluralize_items(count: int) -> str:
    """'1 item' / '3 items'."""
    return f"{count} item{'' if count == 1 else 's'}"
