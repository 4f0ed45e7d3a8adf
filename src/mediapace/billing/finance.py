"""Flatten a built billing schedule into invoice-ready finance lines."""

from __future__ import annotations

import calendar
import json
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, Mapping, Optional

from ..errors import ValidationError
from ..utils.money import ZERO, round_money, to_decimal, to_float
from .headers import PLATFORM_TARGETING_TYPES
from .schedule import MEDIA_TYPE_LABELS

ADVERTISING_ASSOCIATES = "advertising associates"

_MONTHS = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}
_MONTHS.update({name.lower(): i for i, name in enumerate(calendar.month_abbr) if name})
_MONTHS["sept"] = 9

_LABEL_TO_KEY = {label.lower(): key for key, label in MEDIA_TYPE_LABELS.items()}


@dataclass
class FinanceLineItem:
    item_code: str
    media_type: str
    description: str
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemCode": self.item_code,
            "mediaType": self.media_type,
            "description": self.description,
            "amount": to_float(self.amount),
        }


@dataclass(frozen=True)
class ServiceAmounts:
    adserving_tech_fees: Decimal = ZERO
    production: Decimal = ZERO
    assembled_fee: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "adservingTechFees": to_float(self.adserving_tech_fees),
            "production": to_float(self.production),
            "assembledFee": to_float(self.assembled_fee),
        }


def parse_month_label(label: Any) -> Optional[tuple[int, int]]:
    """Parse ``YYYY-MM``, ``YYYYMM``, ``YYYY-MM-DD``, ``YYYY/MM``, ``MM/YYYY``, ``Month YYYY`` or ``Mon YYYY``."""
    if label is None:
        return None
    text = str(label).strip()
    if not text:
        return None

    m = re.fullmatch(r"(\d{4})(\d{2})", text)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        return (year, month) if 1 <= month <= 12 else None

    m = re.fullmatch(r"(\d{4})[-/](\d{1,2})(?:[-/]\d{1,2})?(?:[T ].*)?", text)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        return (year, month) if 1 <= month <= 12 else None

    m = re.fullmatch(r"(\d{1,2})[-/](\d{4})", text)
    if m:
        month, year = int(m.group(1)), int(m.group(2))
        return (year, month) if 1 <= month <= 12 else None

    normalized = re.sub(r"[\s_\-,]+", " ", text).strip().lower()
    m = re.fullmatch(r"([a-z]+)\.? (\d{4})", normalized)
    if m and m.group(1) in _MONTHS:
        return int(m.group(2)), _MONTHS[m.group(1)]

    m = re.search(r"(\d{4})\D+?(\d{1,2})\b", normalized)
    if m and 1 <= int(m.group(2)) <= 12:
        return int(m.group(1)), int(m.group(2))
    return None


def match_month_year(label: Any, year: int, month: int) -> bool:
    return parse_month_label(label) == (year, month)


def _check_period(year: int, month: int) -> None:
    if not isinstance(year, int) or not 1900 <= year <= 9999:
        raise ValidationError(f"Invalid year: {year!r}")
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month!r}")


def iter_schedule_entries(schedule: Any) -> Iterator[Mapping[str, Any]]:
    """Accept a list of months, ``{"months": [...]}``, or the JSON text of either."""
    if isinstance(schedule, (str, bytes)):
        try:
            schedule = json.loads(schedule)
        except json.JSONDecodeError:
            return
    if isinstance(schedule, Mapping):
        schedule = schedule.get("months")
    if not isinstance(schedule, list):
        return
    for entry in schedule:
        if isinstance(entry, Mapping):
            yield entry


def _entry_label(entry: Mapping[str, Any]) -> Any:
    return entry.get("monthYear") or entry.get("month_year") or entry.get("month") or entry.get("month_label")


def find_month_entry(schedule: Any, year: int, month: int) -> Optional[Mapping[str, Any]]:
    _check_period(year, month)
    for entry in iter_schedule_entries(schedule):
        if match_month_year(_entry_label(entry), year, month):
            return entry
    return None


def build_item_code(billing_agency: Optional[str], media_type: str) -> str:
    prefix = "G" if (billing_agency or "").strip().lower() == ADVERTISING_ASSOCIATES else "D"
    code = re.sub(r"\s+", "", media_type)
    return f"{prefix}.{code}"


def to_natural_language(text: str) -> str:
    """``paid_social`` / ``paidSocial`` -> ``Paid Social``; already-spaced titles pass through."""
    if not text:
        return text
    if " " in text and text[0].isupper():
        return text
    if "_" in text:
        parts = text.split("_")
    else:
        parts = re.sub(r"([A-Z])", r" \1", text).split(" ")
    words = [p.strip() for p in parts if p.strip()]
    return " ".join(w[0].upper() + w[1:].lower() for w in words)


def media_type_key(display_name: str) -> str:
    return _LABEL_TO_KEY.get((display_name or "").strip().lower(), display_name)


def _billing_agency(line: Mapping[str, Any], agencies: Mapping[str, str]) -> Optional[str]:
    parts = str(line.get("lineItemId") or "").split("-")
    candidates = [parts[1]] if len(parts) >= 2 else []
    candidates.append(str(line.get("header1") or ""))
    for candidate in candidates:
        agency = agencies.get(candidate.strip().lower())
        if agency:
            return agency
    return None


def extract_line_items(
    schedule: Any,
    year: int,
    month: int,
    billing_agency_by_publisher: Optional[Mapping[str, str]] = None,
) -> list[FinanceLineItem]:
    entry = find_month_entry(schedule, year, month)
    if not entry:
        return []
    agencies = {str(k).strip().lower(): v for k, v in (billing_agency_by_publisher or {}).items()}

    items: list[FinanceLineItem] = []
    for media in entry.get("mediaTypes") or []:
        if not isinstance(media, Mapping):
            continue
        display = str(media.get("mediaType") or media.get("media_type") or media.get("type") or media.get("name") or "")
        key = media_type_key(display)
        for line in media.get("lineItems") or []:
            if not isinstance(line, Mapping):
                continue
            amount = to_decimal(line.get("amount"))
            if amount <= ZERO:
                continue
            parts = []
            header1 = str(line.get("header1") or "").strip()
            if header1:
                parts.append(to_natural_language(header1))
            second = line.get("header2")
            if key in PLATFORM_TARGETING_TYPES:
                for k in ("targeting", "creative_targeting", "creativeTargeting", "targeting_attribute", "targetingAttribute"):
                    if line.get(k):
                        second = line.get(k)
                        break
            second = str(second or "").strip()
            if second:
                parts.append(to_natural_language(second))
            items.append(
                FinanceLineItem(
                    item_code=build_item_code(_billing_agency(line, agencies), display),
                    media_type=display,
                    description=" ".join(parts) or display,
                    amount=amount,
                )
            )
    return items


def extract_service_amounts(schedule: Any, year: int, month: int) -> ServiceAmounts:
    entry = find_month_entry(schedule, year, month)
    if not entry:
        return ServiceAmounts()
    return ServiceAmounts(
        adserving_tech_fees=to_decimal(entry.get("adservingTechFees")),
        production=to_decimal(entry.get("production")),
        assembled_fee=to_decimal(entry.get("feeTotal")),
    )


def merge_finance_line_items(items: list[FinanceLineItem]) -> list[FinanceLineItem]:
    """Merge exact (item_code, media_type, description) duplicates; first-seen order."""
    merged: dict[tuple[str, str, str], FinanceLineItem] = {}
    for item in items or []:
        key = (item.item_code, item.media_type, item.description)
        existing = merged.get(key)
        if existing is None:
            merged[key] = FinanceLineItem(item.item_code, item.media_type, item.description, item.amount)
        else:
            existing.amount += item.amount
    for item in merged.values():
        item.amount = round_money(item.amount)
    return list(merged.values())
