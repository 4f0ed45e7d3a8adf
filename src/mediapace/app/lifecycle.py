"""mediapace lifecycle: startup and shutdown."""

from __future__ import annotations

import asyncio
import os
from typing import Optional

from ..services import EngineServices, build_services
from ..utils.config_loader import ConfigLoader, EngineSettings
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


async def startup_event(app, loader: Optional[ConfigLoader] = None):
    """Called on FastAPI startup."""
    strict_startup = os.getenv("MEDIAPACE_STARTUP_STRICT", "0").strip() == "1"
    loader = loader or ConfigLoader()

    try:
        settings = loader.load_config()
    except (ValueError, FileNotFoundError) as exc:
        logger.error("Config load failed on startup", error=str(exc), strict=strict_startup)
        if strict_startup:
            raise
        settings = EngineSettings()

    services = build_services(settings)
    app.state.services = services

    if settings.pool.min_connections:
        warm_timeout = max(5, settings.pool.acquire_timeout_ms // 1000)
        try:
            await asyncio.wait_for(services.pool.warm(), timeout=warm_timeout)
        except Exception as exc:
            logger.error("Warehouse pool warm-up failed", error=str(exc), strict=strict_startup)
            if strict_startup:
                raise

    logger.info(
        "mediapace started",
        driver=settings.warehouse.driver,
        pool_max=settings.pool.max_connections,
        cache_ttl=settings.cache.ttl_seconds,
    )


async def shutdown_event(app):
    """Called on FastAPI shutdown."""
    services: Optional[EngineServices] = getattr(app.state, "services", None)
    if services is not None:
        await services.close()
