"""Calendar helpers shared by proration, billing and the pacing service."""

from __future__ import annotations

import calendar
import math
from datetime import date, datetime, timedelta
from typing import Any, Iterator
from zoneinfo import ZoneInfo

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y", "%Y%m%d")


def parse_date(value: Any) -> date | None:
    """Parse a calendar date from common plan formats. Returns None on failure."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # ISO timestamps carry the calendar date in the first ten characters
    if len(text) > 10 and text[4:5] == "-" and text[10:11] in ("T", " "):
        text = text[:10]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_timestamp(value: Any) -> float | None:
    """Parse a creation timestamp (ISO string or epoch seconds/millis) to epoch seconds."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return float(value) / 1000.0 if value > 10_000_000_000 else float(value)
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
    except ValueError:
        pass
    try:
        return parse_timestamp(float(text))
    except ValueError:
        return None


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_label(d: date) -> str:
    """``January 2025`` style label used on billing schedules."""
    return f"{calendar.month_name[d.month]} {d.year}"


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def iter_months(start: date, end: date) -> Iterator[tuple[int, int]]:
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def today_in(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()
