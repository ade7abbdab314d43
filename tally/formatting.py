"""
Presentation helpers for amounts and dates.

Pure functions; the screens call these, the ledger core never does
except to build balance descriptions.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Union

DEFAULT_CURRENCY_SYMBOL = "৳"

_CENTS = Decimal("0.01")


def format_currency(
    amount: Union[Decimal, int, str],
    symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> str:
    """
    Format an amount the way the ledger screens show money.

    Thousands are grouped, at most two decimals are shown and trailing
    zeros are dropped: 1000 -> "৳1,000", 12.50 -> "৳12.5", -400 -> "-৳400".
    """
    value = Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_EVEN)
    sign = "-" if value < 0 else ""
    text = f"{abs(value):,.2f}".rstrip("0").rstrip(".")
    return f"{sign}{symbol}{text}"


def format_date(value: Union[date, datetime]) -> str:
    """Medium date style, e.g. "Oct 9, 2026"."""
    return f"{value:%b} {value.day}, {value.year}"


def format_short_date(value: Union[date, datetime]) -> str:
    """Compact date used in lists, e.g. "09 Oct 2026"."""
    return value.strftime("%d %b %Y")
