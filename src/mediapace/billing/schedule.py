"""Month-by-month billing schedule builder.

Zero-spend months and empty media buckets are pruned, never zero-filled.
Amounts are written as display currency strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..utils.money import ZERO, format_currency, to_decimal

MEDIA_TYPE_LABELS: dict[str, str] = {
    "search": "Search",
    "socialMedia": "Social Media",
    "television": "Television",
    "radio": "Radio",
    "newspaper": "Newspaper",
    "magazines": "Magazines",
    "ooh": "OOH",
    "cinema": "Cinema",
    "digiDisplay": "Digital Display",
    "digiAudio": "Digital Audio",
    "digiVideo": "Digital Video",
    "bvod": "BVOD",
    "integration": "Integration",
    "progDisplay": "Programmatic Display",
    "progVideo": "Programmatic Video",
    "progBvod": "Programmatic BVOD",
    "progAudio": "Programmatic Audio",
    "progOoh": "Programmatic OOH",
    "influencers": "Influencers",
}


def media_type_label(key: str) -> str:
    return MEDIA_TYPE_LABELS.get(key, key)


@dataclass
class BillingLineInput:
    line_item_id: str
    header1: str = ""
    header2: str = ""
    monthly_amounts: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BillingLineInput":
        amounts = data.get("monthlyAmounts") or data.get("monthly_amounts") or {}
        return cls(
            line_item_id=str(data.get("lineItemId") or data.get("line_item_id") or ""),
            header1=str(data.get("header1") or ""),
            header2=str(data.get("header2") or ""),
            monthly_amounts=dict(amounts) if isinstance(amounts, Mapping) else {},
        )

    def amount_for(self, month_year: str) -> Decimal:
        return to_decimal(self.monthly_amounts.get(month_year))


@dataclass
class BillingMonthInput:
    month_year: str
    line_items: dict[str, list[BillingLineInput]] = field(default_factory=dict)
    fee_total: Any = None
    adserving_tech_fees: Any = None
    production: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BillingMonthInput":
        raw_items = data.get("lineItems") or data.get("line_items") or {}
        line_items: dict[str, list[BillingLineInput]] = {}
        if isinstance(raw_items, Mapping):
            for media_key, items in raw_items.items():
                if not isinstance(items, (list, tuple)):
                    continue
                line_items[str(media_key)] = [
                    item if isinstance(item, BillingLineInput) else BillingLineInput.from_dict(item)
                    for item in items
                    if isinstance(item, (Mapping, BillingLineInput))
                ]
        return cls(
            month_year=str(data.get("monthYear") or data.get("month_year") or ""),
            line_items=line_items,
            fee_total=data.get("feeTotal"),
            adserving_tech_fees=data.get("adservingTechFees"),
            production=data.get("production"),
        )


def _month_entry(month: BillingMonthInput) -> dict[str, Any] | None:
    fees = {
        "adservingTechFees": to_decimal(month.adserving_tech_fees),
        "production": to_decimal(month.production),
        "feeTotal": to_decimal(month.fee_total),
    }
    media_types: list[dict[str, Any]] = []
    for media_key, items in month.line_items.items():
        kept = []
        for item in items:
            amount = item.amount_for(month.month_year)
            if amount > ZERO:
                kept.append(
                    {
                        "lineItemId": item.line_item_id,
                        "header1": item.header1,
                        "header2": item.header2,
                        "amount": format_currency(amount),
                    }
                )
        if kept:
            media_types.append({"mediaType": media_type_label(media_key), "lineItems": kept})

    if not media_types and all(v == ZERO for v in fees.values()):
        return None

    entry: dict[str, Any] = {"monthYear": month.month_year, "mediaTypes": media_types}
    for name, value in fees.items():
        if value != ZERO:
            entry[name] = format_currency(value)
    return entry


def build_billing_schedule(monthly_inputs: Iterable[BillingMonthInput | Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Build the persisted schedule structure, preserving input month order."""
    schedule: list[dict[str, Any]] = []
    for raw in monthly_inputs or []:
        month = raw if isinstance(raw, BillingMonthInput) else BillingMonthInput.from_dict(raw)
        entry = _month_entry(month)
        if entry is not None:
            schedule.append(entry)
    return schedule
