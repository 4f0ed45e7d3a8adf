"""Monthly allocation of burst budgets, with agency fee handling."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from ..mediaplan.models import Burst, LineItem
from ..utils.dates import inclusive_days, iter_months, month_bounds, month_key, month_label
from ..utils.money import ZERO, to_decimal, to_float
from .headers import schedule_headers
from .schedule import BillingLineInput, BillingMonthInput

HUNDRED = Decimal("100")
OVERRIDE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class MonthlyAllocation:
    month_year: str
    media_type: str
    media: Decimal
    fee: Decimal

    @property
    def total(self) -> Decimal:
        return self.media + self.fee

    def to_dict(self) -> dict[str, Any]:
        return {
            "monthYear": self.month_year,
            "mediaType": self.media_type,
            "media": to_float(self.media),
            "fee": to_float(self.fee),
            "total": to_float(self.total),
        }


def split_media_and_fee(
    total: Decimal,
    fee_pct: Decimal,
    budget_includes_fees: bool,
    client_pays_for_media: bool,
) -> tuple[Decimal, Decimal]:
    if budget_includes_fees:
        media = total * (HUNDRED - fee_pct) / HUNDRED
        fee = total - media
    else:
        media = total
        fee = media * fee_pct / HUNDRED
    if client_pays_for_media:
        media = ZERO
    return media, fee


def _month_shares(start: date, end: date, amount: Decimal) -> list[tuple[str, Decimal]]:
    """Split an amount across calendar months by inclusive day overlap.

    The last month takes the remainder so shares always sum to ``amount``.
    """
    total_days = inclusive_days(start, end)
    shares: list[tuple[str, Decimal]] = []
    allocated = ZERO
    months = list(iter_months(start, end))
    for i, (year, month) in enumerate(months):
        first, last = month_bounds(year, month)
        overlap = inclusive_days(max(first, start), min(last, end))
        if i == len(months) - 1:
            share = amount - allocated
        else:
            share = amount * overlap / total_days
            allocated += share
        shares.append((month_key(first), share))
    return shares


def allocate_bursts_monthly(
    bursts: Iterable[Burst],
    media_type: str,
    fee_pct: Any = 0,
    budget_includes_fees: bool = False,
    client_pays_for_media: bool = False,
) -> list[MonthlyAllocation]:
    """Distribute each burst's budget across the months it covers, in month order."""
    pct = to_decimal(fee_pct)
    per_month: dict[str, list[Decimal]] = {}
    for burst in bursts:
        media, fee = split_media_and_fee(burst.budget_amount, pct, budget_includes_fees, client_pays_for_media)
        for (key, media_share), (_, fee_share) in zip(
            _month_shares(burst.start_date, burst.end_date, media),
            _month_shares(burst.start_date, burst.end_date, fee),
        ):
            bucket = per_month.setdefault(key, [ZERO, ZERO])
            bucket[0] += media_share
            bucket[1] += fee_share
    return [
        MonthlyAllocation(month_year=key, media_type=media_type, media=v[0], fee=v[1])
        for key, v in sorted(per_month.items())
    ]


def build_monthly_inputs(
    line_items_by_type: Mapping[str, Iterable[LineItem]],
    *,
    fee_pct_by_type: Optional[Mapping[str, Any]] = None,
    budget_includes_fees: bool = False,
    client_pays_for_media: bool = False,
    adserving_by_month: Optional[Mapping[str, Any]] = None,
    production_by_month: Optional[Mapping[str, Any]] = None,
) -> list[BillingMonthInput]:
    """Turn normalized line items into per-month schedule inputs.

    Month keys on the output are ``January 2025`` style labels; the optional
    ad serving and production maps are keyed by ``YYYY-MM``.
    """
    fee_pct_by_type = fee_pct_by_type or {}
    adserving_by_month = adserving_by_month or {}
    production_by_month = production_by_month or {}

    lines: dict[str, list[BillingLineInput]] = {}
    fee_by_month: dict[str, Decimal] = {}
    starts: list[date] = []
    ends: list[date] = []

    for media_type, items in line_items_by_type.items():
        for item in items:
            if not item.bursts:
                continue
            starts.append(item.start_date)
            ends.append(item.end_date)
            monthly: dict[str, Decimal] = {}
            for alloc in allocate_bursts_monthly(
                item.bursts,
                media_type,
                fee_pct_by_type.get(media_type, 0),
                budget_includes_fees,
                client_pays_for_media,
            ):
                year, month = (int(p) for p in alloc.month_year.split("-"))
                label = month_label(date(year, month, 1))
                monthly[label] = monthly.get(label, ZERO) + alloc.media
                fee_by_month[alloc.month_year] = fee_by_month.get(alloc.month_year, ZERO) + alloc.fee
            header1, header2 = schedule_headers(media_type, {**item.attributes.to_dict(), **item.raw})
            lines.setdefault(media_type, []).append(
                BillingLineInput(
                    line_item_id=item.line_item_id,
                    header1=header1,
                    header2=header2,
                    monthly_amounts=monthly,
                )
            )

    if not starts:
        return []

    inputs: list[BillingMonthInput] = []
    for year, month in iter_months(min(starts), max(ends)):
        first = date(year, month, 1)
        key = month_key(first)
        inputs.append(
            BillingMonthInput(
                month_year=month_label(first),
                line_items=lines,
                fee_total=fee_by_month.get(key, ZERO),
                adserving_tech_fees=adserving_by_month.get(key),
                production=production_by_month.get(key),
            )
        )
    return inputs


@dataclass(frozen=True)
class OverrideCheck:
    is_valid: bool
    total_difference: Decimal
    error_message: Optional[str] = None


def _month_total(value: Any) -> Decimal:
    if isinstance(value, Mapping):
        return to_decimal(value.get("totalAmount", value.get("total")))
    if isinstance(value, MonthlyAllocation):
        return value.total
    return to_decimal(value)


def validate_overrides(original: Iterable[Any], overrides: Iterable[Any]) -> OverrideCheck:
    """Manual month overrides must keep the campaign total within a cent."""
    original_total = sum((_month_total(m) for m in original), ZERO)
    override_total = sum((_month_total(m) for m in overrides), ZERO)
    diff = override_total - original_total
    if abs(diff) <= OVERRIDE_TOLERANCE:
        return OverrideCheck(is_valid=True, total_difference=diff)
    if diff > 0:
        message = f"Total override amount exceeds original by ${diff:.2f}. Please adjust to match within $0.01."
    else:
        message = f"Total override amount is ${abs(diff):.2f} less than original. Please adjust to match within $0.01."
    return OverrideCheck(is_valid=False, total_difference=diff, error_message=message)
