"""Pacing: proration, plan-vs-actual, TTL cache, warehouse and search fetch."""

from .cache import CacheResult, CacheState, PacingCache, build_cache_key
from .calculator import calculate_pacing, deliverable_key_for
from .models import PacingResult, PacingRow, PacingSeriesPoint, PacingStatus
from .proration import compute_to_date, expected_daily_series, expected_spend_from_schedule, time_elapsed_pct
from .search import SearchPacing, SearchPacingService, aggregate_search_rows

__all__ = [
    "CacheResult",
    "CacheState",
    "PacingCache",
    "build_cache_key",
    "calculate_pacing",
    "deliverable_key_for",
    "PacingResult",
    "PacingRow",
    "PacingSeriesPoint",
    "PacingStatus",
    "SearchPacing",
    "SearchPacingService",
    "aggregate_search_rows",
    "compute_to_date",
    "expected_daily_series",
    "expected_spend_from_schedule",
    "time_elapsed_pct",
]
