# artcart/utils/money.py
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENTS = Decimal("0.01")

# leading run of characters that are neither digits nor whitespace: "₪", "$", "US$"
SYMBOL_RE = re.compile(r"^[^\d\s]+")
_NON_NUMERIC_RE = re.compile(r"[^\d.]")
_LEADING_NUMBER_RE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)")


def extract_symbol(text: Any) -> Optional[str]:
    if not isinstance(text, str):
        return None
    m = SYMBOL_RE.match(text)
    return m.group(0) if m else None


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Extract a non-negative two-decimal amount from a price.

    Strings are reduced to their digits and dots ("₪1,200.5" -> "1200.5") and the
    leading decimal number is taken. Numbers are used as-is. Returns None when
    nothing numeric can be found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        m = _LEADING_NUMBER_RE.match(_NON_NUMERIC_RE.sub("", value))
        if not m:
            return None
        amount = Decimal(m.group(1))
    else:
        return None
    try:
        if not amount.is_finite():
            return None
        return abs(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def format_price(amount: Decimal, symbol: str) -> str:
    return f"{symbol}{amount:.2f}"
