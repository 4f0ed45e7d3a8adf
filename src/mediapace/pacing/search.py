"""Search pacing: cost, clicks, conversions and top-impression share.

Rows come back from the search fact table grouped by line item and day.
The campaign-wide daily series and totals are rolled up from those rows,
so a single statement serves every view.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from ..utils.config_loader import EngineSettings
from ..utils.dates import parse_date, today_in
from ..utils.deterministic import normalize_ids
from ..utils.logging_config import StructuredLogger
from ..utils.money import ZERO, to_decimal, to_float
from ..warehouse.pool import WarehousePool
from .cache import CacheResult, PacingCache, build_cache_key
from .service import PacingWindow, check_table_name, clamp_window

logger = StructuredLogger(__name__)

SEARCH_CACHE_SCOPE = "search_pacing"


@dataclass(frozen=True)
class SearchTotals:
    cost: Decimal = ZERO
    clicks: Decimal = ZERO
    conversions: Decimal = ZERO
    revenue: Decimal = ZERO
    impressions: Decimal = ZERO
    top_impression_pct: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cost": to_float(self.cost),
            "clicks": to_float(self.clicks),
            "conversions": to_float(self.conversions),
            "revenue": to_float(self.revenue),
            "impressions": to_float(self.impressions),
            "topImpressionPct": to_float(self.top_impression_pct),
        }


@dataclass(frozen=True)
class SearchDay:
    day: date
    totals: SearchTotals

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.day.isoformat(), **self.totals.to_dict()}


@dataclass(frozen=True)
class SearchLineItemSeries:
    line_item_id: str
    line_item_name: str | None
    totals: SearchTotals
    daily: tuple[SearchDay, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "lineItemId": self.line_item_id,
            "lineItemName": self.line_item_name,
            "totals": self.totals.to_dict(),
            "daily": [d.to_dict() for d in self.daily],
        }


@dataclass(frozen=True)
class SearchPacing:
    totals: SearchTotals
    daily: tuple[SearchDay, ...]
    line_items: tuple[SearchLineItemSeries, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totals": self.totals.to_dict(),
            "daily": [d.to_dict() for d in self.daily],
            "lineItems": [li.to_dict() for li in self.line_items],
        }


def summarize(parts: Iterable[SearchTotals]) -> SearchTotals:
    """Sum the additive metrics; top-impression share is impression-weighted.

    Parts with no share or no impressions carry no weight. With nothing to
    weigh the share is None rather than 0.
    """
    cost = clicks = conversions = revenue = impressions = ZERO
    weighted = weight = ZERO
    for part in parts:
        cost += part.cost
        clicks += part.clicks
        conversions += part.conversions
        revenue += part.revenue
        impressions += part.impressions
        if part.top_impression_pct is not None and part.impressions > ZERO:
            weighted += part.top_impression_pct * part.impressions
            weight += part.impressions
    return SearchTotals(
        cost=cost,
        clicks=clicks,
        conversions=conversions,
        revenue=revenue,
        impressions=impressions,
        top_impression_pct=weighted / weight if weight > ZERO else None,
    )


def _nullable_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool) or str(value).strip() == "":
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def build_search_sql(table: str, id_count: int, row_limit: int) -> str:
    check_table_name(table)
    placeholders = ", ".join("?" for _ in range(id_count))
    return f"""
SELECT
  LOWER(LINE_ITEM_ID) AS LINE_ITEM_ID,
  MAX(LINE_ITEM_NAME) AS LINE_ITEM_NAME,
  CAST(DATE_DAY AS DATE) AS DATE_DAY,
  SUM(CLICKS) AS CLICKS,
  SUM(IMPRESSIONS) AS IMPRESSIONS,
  SUM(AMOUNT_SPENT) AS COST,
  SUM(CONVERSIONS) AS CONVERSIONS,
  SUM(REVENUE) AS REVENUE,
  SUM(IMPRESSIONS * TOP_IMPRESSION_PERCENTAGE) / NULLIF(SUM(IMPRESSIONS), 0) AS TOP_IMPRESSION_PCT
FROM {table}
WHERE LOWER(LINE_ITEM_ID) IN ({placeholders})
  AND CAST(DATE_DAY AS DATE) BETWEEN CAST(? AS DATE) AND CAST(? AS DATE)
GROUP BY LOWER(LINE_ITEM_ID), CAST(DATE_DAY AS DATE)
ORDER BY LOWER(LINE_ITEM_ID) ASC, CAST(DATE_DAY AS DATE) ASC
LIMIT {int(row_limit)}
""".strip()


def map_search_row(row: dict[str, Any]) -> tuple[str, str | None, SearchDay] | None:
    upper = {str(k).upper(): v for k, v in row.items()}
    line_item_id = str(upper.get("LINE_ITEM_ID") or "").strip().lower()
    day = parse_date(upper.get("DATE_DAY") or upper.get("DATE"))
    if not line_item_id or day is None:
        return None
    name = str(upper.get("LINE_ITEM_NAME") or "").strip() or None
    totals = SearchTotals(
        cost=to_decimal(upper.get("COST")),
        clicks=to_decimal(upper.get("CLICKS")),
        conversions=to_decimal(upper.get("CONVERSIONS")),
        revenue=to_decimal(upper.get("REVENUE")),
        impressions=to_decimal(upper.get("IMPRESSIONS")),
        top_impression_pct=_nullable_decimal(upper.get("TOP_IMPRESSION_PCT")),
    )
    return line_item_id, name, SearchDay(day, totals)


def aggregate_search_rows(raw_rows: Iterable[dict[str, Any]]) -> SearchPacing:
    names: dict[str, str | None] = {}
    days_by_item: dict[str, dict[date, list[SearchTotals]]] = {}
    for raw in raw_rows:
        mapped = map_search_row(raw)
        if mapped is None:
            continue
        line_item_id, name, day = mapped
        if not names.get(line_item_id):
            names[line_item_id] = name
        days_by_item.setdefault(line_item_id, {}).setdefault(day.day, []).append(day.totals)

    line_items: list[SearchLineItemSeries] = []
    by_day: dict[date, list[SearchTotals]] = {}
    for line_item_id in sorted(days_by_item):
        daily = tuple(
            SearchDay(d, summarize(parts)) for d, parts in sorted(days_by_item[line_item_id].items())
        )
        for entry in daily:
            by_day.setdefault(entry.day, []).append(entry.totals)
        line_items.append(
            SearchLineItemSeries(
                line_item_id=line_item_id,
                line_item_name=names.get(line_item_id),
                totals=summarize(d.totals for d in daily),
                daily=daily,
            )
        )

    overall_daily = tuple(SearchDay(d, summarize(parts)) for d, parts in sorted(by_day.items()))
    return SearchPacing(
        totals=summarize(d.totals for d in overall_daily),
        daily=overall_daily,
        line_items=tuple(line_items),
    )


class SearchPacingService:
    def __init__(
        self,
        pool: WarehousePool,
        cache: PacingCache,
        settings: Optional[EngineSettings] = None,
    ):
        self.pool = pool
        self.cache = cache
        self.settings = settings or EngineSettings()

    def prepare(
        self,
        line_item_ids: Iterable[Any] | None,
        start_date: Any = None,
        end_date: Any = None,
        today: date | None = None,
    ) -> tuple[list[str], PacingWindow]:
        ids = normalize_ids(line_item_ids)
        if not ids:
            raise ValidationError("lineItemIds is required")
        limit = self.settings.pacing.max_ids
        if len(ids) > limit:
            logger.warning("Search line item id list clamped", requested=len(ids), limit=limit)
            ids = ids[:limit]
        window = clamp_window(
            start_date,
            end_date,
            today=today or today_in(self.settings.warehouse.timezone),
            max_range_days=self.settings.pacing.max_range_days,
        )
        return ids, window

    async def _query(self, ids: list[str], window: PacingWindow) -> SearchPacing:
        row_limit = self.settings.pacing.row_limit
        sql = build_search_sql(self.settings.warehouse.search_table, len(ids), row_limit)
        raw_rows = await self.pool.execute(sql, [*ids, window.start.isoformat(), window.end.isoformat()])
        if len(raw_rows) >= row_limit:
            logger.warning(
                "Search pacing query hit row limit",
                row_limit=row_limit,
                start=window.start,
                end=window.end,
            )
        result = aggregate_search_rows(raw_rows)
        if not result.line_items:
            logger.warning("Search pacing query returned no rows", ids=len(ids), start=window.start, end=window.end)
        return result

    async def fetch(
        self,
        line_item_ids: Iterable[Any] | None,
        start_date: Any = None,
        end_date: Any = None,
        today: date | None = None,
    ) -> SearchPacing:
        ids, window = self.prepare(line_item_ids, start_date, end_date, today)
        return await self._query(ids, window)

    async def fetch_cached(
        self,
        line_item_ids: Iterable[Any] | None,
        start_date: Any = None,
        end_date: Any = None,
        today: date | None = None,
    ) -> CacheResult[SearchPacing]:
        ids, window = self.prepare(line_item_ids, start_date, end_date, today)
        key = build_cache_key(SEARCH_CACHE_SCOPE, None, window.start, window.end, ids)

        async def fetcher() -> SearchPacing:
            return await self._query(ids, window)

        return await self.cache.get_or_fetch(key, fetcher, self.settings.cache.ttl_seconds)
