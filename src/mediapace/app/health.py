"""Liveness and readiness endpoints."""

from __future__ import annotations

from datetime import datetime, UTC

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mediapace import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "ts": datetime.now(UTC).isoformat(),
    }


@router.get("/ready")
async def ready(request: Request, deep: bool = False):
    services = getattr(request.app.state, "services", None)
    if services is None:
        return JSONResponse(status_code=503, content={"ready": False, "checks": {"services": {"ok": False}}})

    checks: dict[str, dict] = {
        "services": {"ok": True},
        "pool": {"ok": True, **services.pool.stats()},
        "cache": {"ok": True, "entries": services.cache.size()},
    }
    ready_ok = True
    if deep:
        outcome = await services.pool.try_execute("SELECT 1 AS ok")
        checks["warehouse"] = {"ok": outcome.ok, **outcome.to_dict()}
        ready_ok = outcome.ok
    return JSONResponse(status_code=200 if ready_ok else 503, content={"ready": ready_ok, "checks": checks})
