"""mediapace HTTP API.

Pacing routes (``/api/pacing/line-items``, ``/search``, ``/expected``,
``/plan-vs-actual``) read warehouse actuals through the TTL cache and report
HIT, MISS or STALE in the ``X-Pacing-Cache`` header. Media plan routes
normalize plan records (``/api/mediaplans/normalize``), build billing
schedules (``/api/billing/schedule``) and derive finance lines and accruals
(``/api/finance/line-items``, ``/api/finance/accrual``). ``/health`` is a
liveness check; ``/ready`` reports pool and cache state.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mediapace import __version__
from ..utils.logging_config import setup_logging
from .billing import router as billing_router
from .health import router as health_router
from .lifecycle import shutdown_event, startup_event
from .pacing import CACHE_HEADER, router as pacing_router


def _csv_env(name: str) -> list[str]:
    return [item.strip() for item in (os.getenv(name) or "").split(",") if item.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_event(app)
    try:
        yield
    finally:
        await shutdown_event(app)


def create_app() -> FastAPI:
    application = FastAPI(title="mediapace", version=__version__, lifespan=lifespan)
    application.state.services = None

    # The cache state header must stay readable cross-origin
    origins = _csv_env("MEDIAPACE_CORS_ORIGINS")
    if origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
            expose_headers=[CACHE_HEADER],
        )

    for router in (health_router, pacing_router, billing_router):
        application.include_router(router)
    return application


load_dotenv()
setup_logging(os.getenv("MEDIAPACE_LOG_LEVEL", "INFO"))

app = create_app()

__all__ = ["app", "create_app"]
