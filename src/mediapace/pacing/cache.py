"""In-process TTL cache for pacing queries with stale fallback.

Entries are only replaced by a successful fetch. When a refresh fails the
previous value is served flagged as STALE and its timestamp is left alone,
so the next call tries the fetcher again. No capacity bound, no request
coalescing: concurrent misses on one key each call the fetcher.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from ..utils.dates import parse_date
from ..utils.deterministic import canonical_json, normalize_ids, stable_hash_hex
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60


class CacheState(StrEnum):
    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    created_at: float


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    value: T
    state: CacheState
    stale_error: Optional[BaseException] = None

    @property
    def is_stale(self) -> bool:
        return self.state is CacheState.STALE


def _date_part(value: Any, missing: str) -> str:
    if value is None or value == "":
        return missing
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else str(value).strip() or missing


def build_cache_key(
    scope: str,
    entity_id: str | None,
    start: Any = None,
    end: Any = None,
    ids: Iterable[Any] | None = None,
) -> str:
    """Content-derived key; id order and casing do not matter."""
    normalized = normalize_ids(ids)
    ids_hash = stable_hash_hex(canonical_json(normalized)) if normalized else "no_ids"
    entity = (entity_id or "").strip() or "no_mba"
    return "|".join(
        [
            scope,
            entity,
            _date_part(start, "no_start"),
            _date_part(end, "no_end"),
            ids_hash,
        ]
    )


class PacingCache:
    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.default_ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    def peek(self, key: str) -> Optional[CacheEntry[Any]]:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())

    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult[T]:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        existing = self._entries.get(key)
        if existing is not None and (self._clock() - existing.created_at) < ttl:
            logger.debug("Pacing cache hit", key=key)
            return CacheResult(value=existing.value, state=CacheState.HIT)

        try:
            value = await fetcher()
        except Exception as exc:
            if existing is None:
                raise
            logger.warning(
                "Pacing cache serving stale value",
                key=key,
                age_seconds=round(self._clock() - existing.created_at, 3),
                error=str(exc),
            )
            return CacheResult(value=existing.value, state=CacheState.STALE, stale_error=exc)

        self.set(key, value)
        logger.info("Pacing cache miss stored", key=key)
        return CacheResult(value=value, state=CacheState.MISS)
