"""Warehouse-backed line-item pacing fetch.

Out-of-range requests are clamped, not rejected: the window never extends
past yesterday (in the warehouse timezone) or further back than
``max_range_days``, and only the first ``max_ids`` sorted ids are queried.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from ..utils.config_loader import EngineSettings, PacingSettings
from ..utils.dates import parse_date, today_in
from ..utils.deterministic import normalize_ids
from ..utils.logging_config import StructuredLogger
from ..utils.money import to_decimal
from ..warehouse.pool import WarehousePool
from .cache import CacheResult, PacingCache, build_cache_key
from .models import PacingRow

logger = StructuredLogger(__name__)

CACHE_SCOPE = "line_item_pacing"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*){0,2}$")


@dataclass(frozen=True)
class PacingWindow:
    start: date
    end: date


def clamp_window(
    start: Any,
    end: Any,
    *,
    today: date,
    max_range_days: int,
) -> PacingWindow:
    yesterday = today - timedelta(days=1)
    requested_end = parse_date(end)
    window_end = requested_end if requested_end and requested_end < today else yesterday
    earliest = window_end - timedelta(days=max_range_days)
    requested_start = parse_date(start)
    window_start = max(requested_start, earliest) if requested_start else earliest
    if window_start > window_end:
        window_start = window_end
    return PacingWindow(start=window_start, end=window_end)


def check_table_name(table: str) -> str:
    if not _IDENTIFIER.match(table or ""):
        raise ValidationError(f"Invalid pacing table name: {table!r}")
    return table


def build_pacing_sql(table: str, id_count: int, row_limit: int) -> str:
    check_table_name(table)
    placeholders = ", ".join("?" for _ in range(id_count))
    return f"""
WITH maxd AS (
  SELECT MAX(CAST(DATE_DAY AS DATE)) AS max_date
  FROM {table}
  WHERE LOWER(LINE_ITEM_ID) IN ({placeholders})
),
bounds AS (
  SELECT CAST(? AS DATE) AS start_date,
         LEAST(CAST(? AS DATE), maxd.max_date) AS end_date
  FROM maxd
)
SELECT
  CASE
    WHEN LOWER(CHANNEL) LIKE '%meta%' THEN 'meta'
    WHEN LOWER(CHANNEL) LIKE '%tiktok%' THEN 'tiktok'
    WHEN LOWER(CHANNEL) LIKE '%programmatic%' AND LOWER(CHANNEL) LIKE '%display%' THEN 'programmatic-display'
    WHEN LOWER(CHANNEL) LIKE '%programmatic%' AND LOWER(CHANNEL) LIKE '%video%' THEN 'programmatic-video'
    ELSE LOWER(CHANNEL)
  END AS CHANNEL,
  CAST(DATE_DAY AS DATE) AS DATE_DAY,
  CAMPAIGN_NAME,
  ENTITY_NAME,
  LINE_ITEM_ID,
  AMOUNT_SPENT,
  IMPRESSIONS,
  CLICKS,
  RESULTS,
  VIDEO_3S_VIEWS
FROM {table}, bounds
WHERE bounds.end_date IS NOT NULL
  AND CAST(DATE_DAY AS DATE) BETWEEN bounds.start_date AND bounds.end_date
  AND LOWER(LINE_ITEM_ID) IN ({placeholders})
ORDER BY CAST(DATE_DAY AS DATE) DESC, CHANNEL ASC
LIMIT {int(row_limit)}
""".strip()


def build_probe_sql(table: str, id_count: int) -> str:
    check_table_name(table)
    placeholders = ", ".join("?" for _ in range(id_count))
    return (
        f"SELECT DISTINCT CHANNEL, LINE_ITEM_ID FROM {table} "
        f"WHERE LOWER(LINE_ITEM_ID) IN ({placeholders}) LIMIT 10"
    )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def map_row(row: dict[str, Any]) -> PacingRow | None:
    upper = {str(k).upper(): v for k, v in row.items()}
    day = parse_date(upper.get("DATE_DAY"))
    if day is None:
        return None
    return PacingRow(
        channel=str(upper.get("CHANNEL") or "").strip().lower(),
        date=day,
        line_item_id=str(upper.get("LINE_ITEM_ID") or "").strip().lower(),
        amount_spent=to_decimal(upper.get("AMOUNT_SPENT")),
        impressions=to_decimal(upper.get("IMPRESSIONS")),
        clicks=to_decimal(upper.get("CLICKS")),
        results=to_decimal(upper.get("RESULTS")),
        video_3s_views=to_decimal(upper.get("VIDEO_3S_VIEWS")),
        campaign_name=_text(upper.get("CAMPAIGN_NAME")),
        entity_name=_text(upper.get("ENTITY_NAME")),
    )


class PacingService:
    def __init__(
        self,
        pool: WarehousePool,
        cache: PacingCache,
        settings: Optional[EngineSettings] = None,
    ):
        self.pool = pool
        self.cache = cache
        self.settings = settings or EngineSettings()

    @property
    def pacing(self) -> PacingSettings:
        return self.settings.pacing

    def _today(self) -> date:
        return today_in(self.settings.warehouse.timezone)

    def prepare(
        self,
        mba_number: str | None,
        line_item_ids: Iterable[Any] | None,
        start_date: Any = None,
        end_date: Any = None,
        today: date | None = None,
    ) -> tuple[str, list[str], PacingWindow]:
        mba = (mba_number or "").strip()
        if not mba:
            raise ValidationError("mbaNumber is required")
        ids = normalize_ids(line_item_ids)
        if len(ids) > self.pacing.max_ids:
            logger.warning(
                "Line item id list clamped",
                mba_number=mba,
                requested=len(ids),
                limit=self.pacing.max_ids,
            )
            ids = ids[: self.pacing.max_ids]
        window = clamp_window(
            start_date,
            end_date,
            today=today or self._today(),
            max_range_days=self.pacing.max_range_days,
        )
        return mba, ids, window

    async def fetch_line_item_pacing(
        self,
        mba_number: str | None,
        line_item_ids: Iterable[Any] | None,
        start_date: Any = None,
        end_date: Any = None,
        today: date | None = None,
    ) -> list[PacingRow]:
        mba, ids, window = self.prepare(mba_number, line_item_ids, start_date, end_date, today)
        if not ids:
            return []
        return await self._query(mba, ids, window)

    async def _query(self, mba: str, ids: list[str], window: PacingWindow) -> list[PacingRow]:
        table = self.settings.warehouse.pacing_table
        sql = build_pacing_sql(table, len(ids), self.pacing.row_limit)
        binds: list[Any] = [*ids, window.start.isoformat(), window.end.isoformat(), *ids]
        raw_rows = await self.pool.execute(sql, binds)

        if len(raw_rows) >= self.pacing.row_limit:
            logger.warning(
                "Pacing query hit row limit; oldest days may be missing",
                mba_number=mba,
                row_limit=self.pacing.row_limit,
                start=window.start,
                end=window.end,
            )

        allowed = set(self.pacing.allowed_channels)
        rows: list[PacingRow] = []
        unknown: set[str] = set()
        for raw in raw_rows:
            row = map_row(raw)
            if row is None:
                continue
            if row.channel not in allowed:
                unknown.add(row.channel)
                continue
            rows.append(row)
        rows.sort(key=lambda r: (r.date, r.channel, r.line_item_id))

        if unknown:
            logger.info("Dropped rows for unsupported channels", mba_number=mba, channels=sorted(unknown))
        if not rows:
            logger.warning(
                "Pacing query returned no rows",
                mba_number=mba,
                ids=len(ids),
                start=window.start,
                end=window.end,
            )
            if self.pacing.debug:
                await self._probe(mba, ids)
        return rows

    async def _probe(self, mba: str, ids: list[str]) -> None:
        outcome = await self.pool.try_execute(build_probe_sql(self.settings.warehouse.pacing_table, len(ids)), ids)
        if not outcome.ok:
            logger.error("Zero-row probe failed", mba_number=mba, error=str(outcome.error))
            return
        logger.info(
            "Zero-row probe results",
            mba_number=mba,
            matches=len(outcome.rows),
            suggestion="Data exists outside date range" if outcome.rows else "No data for these line item ids",
        )

    async def fetch_cached(
        self,
        mba_number: str | None,
        line_item_ids: Iterable[Any] | None,
        start_date: Any = None,
        end_date: Any = None,
        today: date | None = None,
    ) -> CacheResult[list[PacingRow]]:
        mba, ids, window = self.prepare(mba_number, line_item_ids, start_date, end_date, today)
        key = build_cache_key(CACHE_SCOPE, mba, window.start, window.end, ids)

        async def fetcher() -> list[PacingRow]:
            if not ids:
                return []
            return await self._query(mba, ids, window)

        return await self.cache.get_or_fetch(key, fetcher, self.settings.cache.ttl_seconds)
