"""Plan-vs-actual pacing for a single line item."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable

from ..mediaplan.models import Burst, LineItem
from ..utils.dates import iter_days
from ..utils.money import ZERO
from .models import PacingMeasure, PacingResult, PacingRow, PacingSeriesPoint, PacingStatus
from .proration import HUNDRED, compute_to_date, expected_daily_series, time_elapsed_pct

DELIVERABLE_KEYS: dict[str, str | None] = {
    "CPM": "impressions",
    "CPC": "clicks",
    "CPA": "results",
    "LEADS": "results",
    "BONUS": "results",
    "CPV": "video_3s_views",
    "FIXED COST": None,
    # The pacing fact table carries no summary deliverable; these pace on spend only
    "SUMMARY": None,
}

DEFAULT_TOLERANCE_PCT = Decimal("10")


def deliverable_key_for(buy_type: str | None) -> str | None:
    return DELIVERABLE_KEYS.get((buy_type or "").strip().upper())


def _clamp_to_total(value: Decimal, total: Decimal) -> Decimal:
    if value < ZERO:
        return ZERO
    if total > ZERO and value > total:
        return total
    return value


def _measure(expected: Decimal, actual: Decimal, total: Decimal) -> PacingMeasure:
    expected = _clamp_to_total(expected, total)
    actual = _clamp_to_total(actual, total)
    pct = actual * HUNDRED / expected if expected > ZERO else None
    return PacingMeasure(expected_to_date=expected, actual_to_date=actual, goal_total=total, pacing_pct=pct)


def _status(line_item: LineItem, as_of: date, spend: PacingMeasure, tolerance: Decimal) -> PacingStatus:
    start, end = line_item.start_date, line_item.end_date
    if start is None or as_of < start:
        return PacingStatus.NOT_STARTED
    if end is not None and as_of >= end and spend.pacing_pct is not None and spend.pacing_pct >= HUNDRED - tolerance:
        return PacingStatus.COMPLETE
    if spend.pacing_pct is None:
        return PacingStatus.ON_TRACK
    if spend.pacing_pct < HUNDRED - tolerance:
        return PacingStatus.BEHIND
    if spend.pacing_pct > HUNDRED + tolerance:
        return PacingStatus.AHEAD
    return PacingStatus.ON_TRACK


def build_daily_series(
    bursts: Iterable[Burst],
    actual_by_day: dict[date, list[Decimal]],
    has_deliverable: bool = True,
) -> tuple[PacingSeriesPoint, ...]:
    """One point per calendar day from the first to the last planned or delivered day.

    Days with no plan or no delivery read as zero. Deliverables are zeroed
    when the buy type has no deliverable metric.
    """
    expected_by_day = {p.day: (p.daily_spend, p.daily_deliverables) for p in expected_daily_series(bursts)}
    days = sorted({*expected_by_day, *actual_by_day})
    if not days:
        return ()

    points = []
    for day in iter_days(days[0], days[-1]):
        exp_spend, exp_deliv = expected_by_day.get(day, (ZERO, ZERO))
        act_spend, act_deliv = actual_by_day.get(day, (ZERO, ZERO))
        points.append(
            PacingSeriesPoint(
                day=day,
                expected_spend=exp_spend,
                actual_spend=act_spend,
                expected_deliverable=exp_deliv if has_deliverable else ZERO,
                actual_deliverable=act_deliv if has_deliverable else ZERO,
            )
        )
    return tuple(points)


def calculate_pacing(
    line_item: LineItem,
    rows: Iterable[PacingRow],
    as_of: date,
    tolerance_pct: Decimal = DEFAULT_TOLERANCE_PCT,
) -> PacingResult:
    key = deliverable_key_for(line_item.attributes.buy_type)
    own_id = line_item.line_item_id.lower()

    actual_spend = ZERO
    actual_deliv = ZERO
    actual_by_day: dict[date, list[Decimal]] = {}
    for row in rows:
        if row.line_item_id != own_id:
            continue
        deliv = row.metric(key) if key else ZERO
        bucket = actual_by_day.setdefault(row.date, [ZERO, ZERO])
        bucket[0] += row.amount_spent
        bucket[1] += deliv
        if row.date <= as_of:
            actual_spend += row.amount_spent
            actual_deliv += deliv

    spend = _measure(compute_to_date(line_item.bursts, as_of), actual_spend, line_item.total_budget)
    deliverable = None
    if key:
        deliverable = _measure(
            compute_to_date(line_item.bursts, as_of, field="deliverable"),
            actual_deliv,
            line_item.total_deliverables,
        )

    start, end = line_item.start_date, line_item.end_date
    elapsed = time_elapsed_pct(start, end, as_of) if start and end else ZERO

    return PacingResult(
        line_item_id=line_item.line_item_id,
        as_of=as_of,
        time_elapsed_pct=elapsed,
        status=_status(line_item, as_of, spend, tolerance_pct),
        spend=spend,
        deliverable_key=key,
        deliverable=deliverable,
        series=build_daily_series(line_item.bursts, actual_by_day, has_deliverable=key is not None),
    )
