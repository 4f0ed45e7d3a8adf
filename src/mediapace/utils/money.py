"""Money parsing and presentation helpers.

Engine math stays in Decimal. Formatting to currency strings happens only
when a billing schedule is written out.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def to_decimal(value: Any) -> Decimal:
    """Coerce numbers and currency strings ("$1,200.50") to Decimal.

    Anything unparsable becomes 0 so one bad amount cannot fail a batch.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return ZERO
        return Decimal(str(value))
    text = _NON_NUMERIC.sub("", str(value).strip())
    if not text or text in {"-", ".", "-."}:
        return ZERO
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return ZERO
    return parsed if parsed.is_finite() else ZERO


def non_negative(value: Any) -> Decimal:
    amount = to_decimal(value)
    return amount if amount > ZERO else ZERO


def round_money(value: Decimal, places: int = 2) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_currency(value: Any) -> str:
    """Render an amount the way en-AU AUD is displayed: ``$1,234.50``."""
    amount = round_money(to_decimal(value))
    sign = "-" if amount < ZERO else ""
    return f"{sign}${abs(amount):,.2f}"


def to_float(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)
