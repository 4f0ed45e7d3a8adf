"""Accruals: what was delivered vs. what was billed, per line item.

Each campaign version carries a delivery schedule and a billing schedule.
Both are flattened for the selected months and merged on
(mba number, version, line item key); the difference is delivery minus
billing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping, Optional

from ..utils.money import ZERO, round_money, to_decimal, to_float
from .finance import iter_schedule_entries, parse_month_label

DELIVERY = "delivery"
BILLING = "billing"

_MONTH_KEYS = (
    "monthYear",
    "month_year",
    "month",
    "billingMonth",
    "monthLabel",
    "month_label",
    "date",
    "startDate",
    "start_date",
    "period_start",
    "periodStart",
)

# (line item key, display name, month-level keys)
_MONTH_SERVICES = (
    (
        "__service__adserving",
        "Adserving & Tech Fees",
        ("adservingTechFees", "adserving_tech_fees", "adServingTechFees", "ad_serving", "adserving"),
    ),
    ("__service__production", "Production", ("production", "production_cost", "productionCost")),
    ("__service__fees", "Fees", ("feeTotal", "fee_total", "assembledFee")),
)

_LINE_AMOUNT_KEYS = ("amount", "totalAmount", "total_amount", "total", "value", "cost", "budget")
_MEDIA_AMOUNT_KEYS = ("amount", "totalAmount")
_MONTH_AMOUNT_KEYS = ("amount", "totalAmount", "spend", "budget", "investment", "media_investment")
_NAME_KEYS = ("lineItemName", "line_item_name", "name", "description", "label", "title")
_HEADER1_KEYS = ("header1", "publisher", "network", "platform", "site")
_HEADER2_KEYS = ("header2", "placement", "station", "title", "format")


def _first(data: Any, keys: Iterable[str]) -> Any:
    if not isinstance(data, Mapping):
        return None
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def parse_signed_amount(value: Any) -> Decimal:
    """Like ``to_decimal`` but ``(1,234.50)`` reads as a negative amount."""
    text = _text(value)
    if text.startswith("(") and text.endswith(")"):
        return -abs(to_decimal(text))
    return to_decimal(value)


def normalize_month_key(value: Any) -> Optional[str]:
    parsed = parse_month_label(value)
    if parsed is None:
        return None
    year, month = parsed
    return f"{year:04d}-{month:02d}"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower())
    return re.sub(r"\s+", "-", slug).strip()


@dataclass
class AccrualVersion:
    client_name: str
    campaign_name: str
    mba_number: str
    version_number: int = 0
    client_slug: Optional[str] = None
    delivery_schedule: Any = None
    billing_schedule: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccrualVersion":
        try:
            version = int(_first(data, ("versionNumber", "version_number")) or 0)
        except (TypeError, ValueError):
            version = 0
        return cls(
            client_name=_text(_first(data, ("clientName", "client_name"))),
            campaign_name=_text(_first(data, ("campaignName", "campaign_name"))),
            mba_number=_text(_first(data, ("mbaNumber", "mba_number"))),
            version_number=version,
            client_slug=_text(_first(data, ("clientSlug", "client_slug"))) or None,
            delivery_schedule=_first(data, ("deliverySchedule", "delivery_schedule")),
            billing_schedule=_first(data, ("billingSchedule", "billing_schedule")),
        )


@dataclass
class AccrualRow:
    client_name: str
    campaign_name: str
    mba_number: str
    version_number: int
    line_item_key: str
    line_item_name: str
    client_slug: Optional[str] = None
    delivery_amount: Decimal = ZERO
    billing_amount: Decimal = ZERO

    @property
    def difference(self) -> Decimal:
        return round_money(self.delivery_amount - self.billing_amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "clientName": self.client_name,
            "clientSlug": self.client_slug,
            "campaignName": self.campaign_name,
            "mbaNumber": self.mba_number,
            "versionNumber": self.version_number,
            "lineItemKey": self.line_item_key,
            "lineItemName": self.line_item_name,
            "deliveryAmount": to_float(self.delivery_amount),
            "billingAmount": to_float(self.billing_amount),
            "difference": to_float(self.difference),
        }


@dataclass(frozen=True)
class _Line:
    source: str
    key: str
    name: str
    amount: Decimal


def _line_name(media_type: str, header1: str, header2: str, explicit: Any = None) -> str:
    name = _text(explicit)
    if name:
        return name
    if header1 and header2:
        return f"{header1} • {header2}"
    return header1 or header2 or media_type or "Line item"


def _line_key(item: Any, media_type: str, header1: str, header2: str, name: str) -> str:
    line_item_id = _text(_first(item, ("lineItemId", "line_item_id", "id")))
    if line_item_id:
        return line_item_id.lower()
    key = "__".join(part.lower() for part in (media_type, header1, header2, name))
    return re.sub(r"\s+", " ", key).strip()


def _amount(item: Any, media_entry: Any, month_entry: Any) -> Decimal:
    value = _first(item, _LINE_AMOUNT_KEYS)
    if value is None:
        value = _first(media_entry, _MEDIA_AMOUNT_KEYS)
    if value is None:
        value = _first(month_entry, _MONTH_AMOUNT_KEYS)
    return round_money(parse_signed_amount(value))


def _item_line(source: str, item: Mapping[str, Any], media_type: str, amount: Decimal) -> _Line:
    header1 = _text(_first(item, _HEADER1_KEYS))
    header2 = _text(_first(item, _HEADER2_KEYS))
    name = _line_name(media_type, header1, header2, _first(item, _NAME_KEYS))
    return _Line(source, _line_key(item, media_type, header1, header2, name), name, amount)


def _media_type_of(entry: Any, *keys: str) -> str:
    return _text(_first(entry, keys))


def flatten_schedule(source: str, schedule: Any, months: set[str]) -> Iterator[_Line]:
    """Yield a line for every amount in the selected months.

    Month-level service amounts (ad serving, production, fees) become their
    own lines. A media type with no line items, or a month with neither,
    counts as one aggregate line when its amount is non-zero.
    """
    for month_entry in iter_schedule_entries(schedule):
        month_key = normalize_month_key(_first(month_entry, _MONTH_KEYS))
        if month_key is None or month_key not in months:
            continue

        for key, name, keys in _MONTH_SERVICES:
            value = _first(month_entry, keys)
            if value is None or _text(value) == "":
                continue
            yield _Line(source, key, name, round_money(parse_signed_amount(value)))

        month_media = _media_type_of(month_entry, "mediaType", "media_type", "channel", "media_channel")
        media_types = _first(month_entry, ("mediaTypes", "media_types", "mediaTypeEntries", "channels"))
        if isinstance(media_types, list):
            for media_entry in media_types:
                if not isinstance(media_entry, Mapping):
                    continue
                media_type = _media_type_of(media_entry, "mediaType", "media_type", "type", "name") or month_media
                items = _first(media_entry, ("lineItems", "line_items", "items", "rows"))
                if isinstance(items, list):
                    for item in items:
                        if isinstance(item, Mapping):
                            yield _item_line(source, item, media_type, _amount(item, media_entry, month_entry))
                    continue
                amount = _amount(None, media_entry, month_entry)
                if amount != ZERO:
                    name = _line_name(media_type, "", "")
                    yield _Line(source, _line_key(media_entry, media_type, "", "", name), name, amount)
            continue

        flat_media = _media_type_of(month_entry, "mediaType", "media_type", "channel")
        items = _first(month_entry, ("lineItems", "line_items", "items"))
        if isinstance(items, list):
            for item in items:
                if isinstance(item, Mapping):
                    yield _item_line(source, item, flat_media, _amount(item, None, month_entry))
            continue

        amount = _amount(month_entry, None, month_entry)
        if amount != ZERO:
            name = _line_name(
                flat_media,
                _text(_first(month_entry, ("header1", "publisher"))),
                _text(_first(month_entry, ("header2", "placement"))),
                _first(month_entry, ("lineItemName", "name", "description")),
            )
            yield _Line(source, _line_key(month_entry, flat_media, "", "", name), name, amount)


def compute_accrual_rows(
    versions: Iterable[AccrualVersion | Mapping[str, Any]],
    months: Iterable[Any],
    client_pays_for_media_by_line_item_id: Optional[Mapping[str, bool]] = None,
) -> list[AccrualRow]:
    """Merge delivery and billing lines for the selected months across versions.

    Delivery is skipped for line items whose client pays the media owner
    directly; their billing still counts.
    """
    selected = {key for key in (normalize_month_key(m) for m in months) if key}
    if not selected:
        return []
    client_pays = {
        _text(k).lower(): bool(v) for k, v in (client_pays_for_media_by_line_item_id or {}).items()
    }

    merged: dict[tuple[str, int, str], AccrualRow] = {}
    for raw in versions:
        version = raw if isinstance(raw, AccrualVersion) else AccrualVersion.from_dict(raw)
        client_name = version.client_name or "Unknown"
        client_slug = version.client_slug or slugify(client_name) or None
        campaign = version.campaign_name or "Unknown campaign"
        mba = version.mba_number or "unknown"

        lines = [
            line
            for line in flatten_schedule(DELIVERY, version.delivery_schedule, selected)
            if not client_pays.get(line.key)
        ]
        lines.extend(flatten_schedule(BILLING, version.billing_schedule, selected))

        for line in lines:
            key = (mba, version.version_number, line.key)
            row = merged.get(key)
            if row is None:
                row = merged[key] = AccrualRow(
                    client_name=client_name,
                    client_slug=client_slug,
                    campaign_name=campaign,
                    mba_number=mba,
                    version_number=version.version_number,
                    line_item_key=line.key,
                    line_item_name=line.name,
                )
            elif len(line.name) > len(row.line_item_name):
                row.line_item_name = line.name
            if line.source == DELIVERY:
                row.delivery_amount = round_money(row.delivery_amount + line.amount)
            else:
                row.billing_amount = round_money(row.billing_amount + line.amount)
    return list(merged.values())
