"""Linear, day-based proration of burst totals.

Day counts are inclusive of both endpoints, so a one-day burst spans one day.
Everything stays in Decimal; rounding is left to presentation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Iterator

from ..billing.finance import iter_schedule_entries, parse_month_label
from ..mediaplan.models import Burst
from ..utils.dates import inclusive_days, iter_days, month_bounds, parse_date
from ..utils.money import ZERO, round_money, to_decimal

HUNDRED = Decimal("100")


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def burst_to_date(burst: Burst, as_of: date, field: str = "budget") -> Decimal:
    total = burst.amount(field)
    if as_of < burst.start_date:
        return ZERO
    if as_of >= burst.end_date:
        return total
    elapsed = inclusive_days(burst.start_date, as_of)
    share = total * elapsed / burst.days
    return _clamp(share, ZERO, total)


def compute_to_date(bursts: Iterable[Burst], as_of: date, field: str = "budget") -> Decimal:
    """Sum of each burst's prorated amount as of ``as_of`` (inclusive)."""
    return sum((burst_to_date(b, as_of, field) for b in bursts), ZERO)


def time_elapsed_pct(start: date, end: date, as_of: date) -> Decimal:
    """Campaign time elapsed as a percentage in [0, 100]."""
    if end < start:
        start, end = end, start
    if as_of > end:
        return HUNDRED
    if as_of < start:
        return ZERO
    pct = Decimal(inclusive_days(start, as_of)) * HUNDRED / inclusive_days(start, end)
    return _clamp(pct, ZERO, HUNDRED)


@dataclass(frozen=True)
class ExpectedPoint:
    day: date
    daily_spend: Decimal
    daily_deliverables: Decimal
    cumulative_spend: Decimal
    cumulative_deliverables: Decimal


def expected_daily_series(bursts: Iterable[Burst]) -> list[ExpectedPoint]:
    """Daily expected spend and deliverables across all bursts, with running totals."""
    per_day: dict[date, list[Decimal]] = {}
    for burst in bursts:
        days = burst.days
        daily_spend = burst.budget_amount / days
        daily_deliv = burst.deliverable_amount / days
        for day in iter_days(burst.start_date, burst.end_date):
            bucket = per_day.setdefault(day, [ZERO, ZERO])
            bucket[0] += daily_spend
            bucket[1] += daily_deliv

    points: list[ExpectedPoint] = []
    run_spend = ZERO
    run_deliv = ZERO
    for day in sorted(per_day):
        spend, deliv = per_day[day]
        run_spend += spend
        run_deliv += deliv
        points.append(ExpectedPoint(day, spend, deliv, run_spend, run_deliv))
    return points


def _iter_schedule_months(schedule: Any) -> Iterator[tuple[int, int, Decimal]]:
    for entry in iter_schedule_entries(schedule):
        parsed = parse_month_label(entry.get("monthYear") or entry.get("month_year") or entry.get("month"))
        if parsed is None:
            continue
        planned = ZERO
        line_items = entry.get("lineItems")
        if isinstance(line_items, list):
            planned += sum((to_decimal(li.get("amount")) for li in line_items if isinstance(li, dict)), ZERO)
        for media in entry.get("mediaTypes") or []:
            if isinstance(media, dict):
                planned += sum(
                    (to_decimal(li.get("amount")) for li in media.get("lineItems") or [] if isinstance(li, dict)),
                    ZERO,
                )
        for fee_field in ("feeTotal", "production", "adservingTechFees"):
            planned += to_decimal(entry.get(fee_field))
        yield parsed[0], parsed[1], planned


def expected_spend_from_schedule(
    schedule: Any,
    campaign_start: Any = None,
    campaign_end: Any = None,
    as_of: date | None = None,
) -> Decimal:
    """Expected spend to date from a month-level delivery/billing schedule.

    Months before ``as_of`` count in full. The ``as_of`` month counts by the
    share of its active campaign days already elapsed.
    """
    as_of = as_of or date.today()
    start = parse_date(campaign_start)
    end = parse_date(campaign_end)
    months = list(_iter_schedule_months(schedule))
    if not months:
        return ZERO
    if start and as_of < start:
        return ZERO
    if end and as_of > end:
        return round_money(sum((m[2] for m in months), ZERO), 4)

    expected = ZERO
    current = (as_of.year, as_of.month)
    for year, month, planned in months:
        if (year, month) < current:
            expected += planned
            continue
        if (year, month) > current:
            continue
        first, last = month_bounds(year, month)
        active_start = max(first, start) if start else first
        active_end = min(last, end) if end else last
        if active_end < active_start:
            continue
        elapsed_end = min(as_of, active_end)
        if elapsed_end < active_start:
            continue
        fraction = Decimal(inclusive_days(active_start, elapsed_end)) / inclusive_days(active_start, active_end)
        expected += planned * fraction
    return round_money(expected, 4)
