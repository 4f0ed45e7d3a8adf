"""Explicitly constructed engine services: pool, cache and the pacing services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .pacing.cache import PacingCache
from .pacing.search import SearchPacingService
from .pacing.service import PacingService
from .utils.config_loader import EngineSettings
from .warehouse.drivers import ConnectionFactory, connection_factory
from .warehouse.pool import WarehousePool


@dataclass
class EngineServices:
    settings: EngineSettings
    cache: PacingCache
    pool: WarehousePool
    pacing: PacingService
    search: SearchPacingService

    async def close(self) -> None:
        await self.pool.close()


def build_services(
    settings: EngineSettings,
    connect: Optional[ConnectionFactory] = None,
    cache: Optional[PacingCache] = None,
) -> EngineServices:
    pool = WarehousePool(
        connect or connection_factory(settings.warehouse),
        settings.pool,
        timezone=settings.warehouse.timezone,
        query_tag=settings.warehouse.query_tag,
    )
    cache = cache or PacingCache(ttl_seconds=settings.cache.ttl_seconds)
    return EngineServices(
        settings=settings,
        cache=cache,
        pool=pool,
        pacing=PacingService(pool, cache, settings),
        search=SearchPacingService(pool, cache, settings),
    )
