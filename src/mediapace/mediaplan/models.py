"""Canonical burst and line-item model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from ..utils.money import ZERO, to_float


@dataclass(frozen=True)
class Burst:
    start_date: date
    end_date: date
    budget_amount: Decimal = ZERO
    deliverable_amount: Decimal = ZERO

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValueError(f"burst ends before it starts: {self.start_date} > {self.end_date}")
        if self.budget_amount < ZERO or self.deliverable_amount < ZERO:
            raise ValueError("burst amounts must be non-negative")

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def amount(self, field_name: str = "budget") -> Decimal:
        if field_name in ("budget", "budget_amount", "spend"):
            return self.budget_amount
        if field_name in ("deliverable", "deliverable_amount", "deliverables"):
            return self.deliverable_amount
        raise ValueError(f"unknown burst amount field: {field_name}")

    def dedupe_key(self) -> tuple:
        return (self.start_date, self.end_date, self.budget_amount, self.deliverable_amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "budgetAmount": to_float(self.budget_amount),
            "deliverableAmount": to_float(self.deliverable_amount),
        }


@dataclass(frozen=True)
class LineItemAttributes:
    platform: str = ""
    network: str = ""
    station: str = ""
    site: str = ""
    publisher: str = ""
    targeting: str = ""
    creative: str = ""
    buy_type: str = ""
    buying_demo: str = ""
    market: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "platform": self.platform,
            "network": self.network,
            "station": self.station,
            "site": self.site,
            "publisher": self.publisher,
            "targeting": self.targeting,
            "creative": self.creative,
            "buyType": self.buy_type,
            "buyingDemo": self.buying_demo,
            "market": self.market,
        }


@dataclass
class LineItem:
    line_item_id: str
    media_type: str
    attributes: LineItemAttributes = field(default_factory=LineItemAttributes)
    bursts: list[Burst] = field(default_factory=list)
    title: str = ""
    line_item_number: int | None = None
    total_media: Decimal = ZERO
    channel: str = ""
    source_index: int = 0
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def start_date(self) -> date | None:
        return min((b.start_date for b in self.bursts), default=None)

    @property
    def end_date(self) -> date | None:
        return max((b.end_date for b in self.bursts), default=None)

    @property
    def total_budget(self) -> Decimal:
        return sum((b.budget_amount for b in self.bursts), ZERO)

    @property
    def total_deliverables(self) -> Decimal:
        return sum((b.deliverable_amount for b in self.bursts), ZERO)

    def to_dict(self) -> dict[str, Any]:
        start, end = self.start_date, self.end_date
        return {
            "lineItemId": self.line_item_id,
            "mediaType": self.media_type,
            "channel": self.channel,
            "title": self.title,
            "lineItemNumber": self.line_item_number,
            "attributes": self.attributes.to_dict(),
            "totalMedia": to_float(self.total_media),
            "startDate": start.isoformat() if start else "",
            "endDate": end.isoformat() if end else "",
            "bursts": [b.to_dict() for b in self.bursts],
        }
