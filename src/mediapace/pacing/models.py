"""Pacing row and result types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Any

from ..utils.money import round_money, to_float


class PacingStatus(StrEnum):
    NOT_STARTED = "not_started"
    ON_TRACK = "on_track"
    BEHIND = "behind"
    AHEAD = "ahead"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PacingRow:
    channel: str
    date: date
    line_item_id: str
    amount_spent: Decimal
    impressions: Decimal
    clicks: Decimal
    results: Decimal
    video_3s_views: Decimal
    campaign_name: str | None = None
    entity_name: str | None = None

    def metric(self, key: str) -> Decimal:
        return getattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "date": self.date.isoformat(),
            "line_item_id": self.line_item_id,
            "amount_spent": to_float(self.amount_spent),
            "impressions": to_float(self.impressions),
            "clicks": to_float(self.clicks),
            "results": to_float(self.results),
            "video_3s_views": to_float(self.video_3s_views),
            "campaign_name": self.campaign_name,
            "entity_name": self.entity_name,
        }


@dataclass(frozen=True)
class PacingMeasure:
    expected_to_date: Decimal
    actual_to_date: Decimal
    goal_total: Decimal
    pacing_pct: Decimal | None

    @property
    def delta(self) -> Decimal:
        return self.actual_to_date - self.expected_to_date

    def to_dict(self) -> dict[str, Any]:
        return {
            "expectedToDate": to_float(self.expected_to_date),
            "actualToDate": to_float(self.actual_to_date),
            "goalTotal": to_float(self.goal_total),
            "delta": to_float(self.delta),
            "pacingPct": to_float(self.pacing_pct),
        }


@dataclass(frozen=True)
class PacingSeriesPoint:
    day: date
    expected_spend: Decimal
    actual_spend: Decimal
    expected_deliverable: Decimal
    actual_deliverable: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "expectedSpend": to_float(round_money(self.expected_spend)),
            "actualSpend": to_float(round_money(self.actual_spend)),
            "expectedDeliverable": to_float(round_money(self.expected_deliverable)),
            "actualDeliverable": to_float(round_money(self.actual_deliverable)),
        }


@dataclass(frozen=True)
class PacingResult:
    line_item_id: str
    as_of: date
    time_elapsed_pct: Decimal
    status: PacingStatus
    spend: PacingMeasure
    deliverable_key: str | None = None
    deliverable: PacingMeasure | None = None
    series: tuple[PacingSeriesPoint, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "lineItemId": self.line_item_id,
            "asOf": self.as_of.isoformat(),
            "timeElapsedPct": to_float(self.time_elapsed_pct),
            "status": str(self.status),
            "spend": self.spend.to_dict(),
            "deliverableKey": self.deliverable_key,
            "deliverable": self.deliverable.to_dict() if self.deliverable else None,
            "series": [point.to_dict() for point in self.series],
        }
