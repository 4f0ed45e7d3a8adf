"""Map engine errors onto HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from ..errors import InfraError, ValidationError, WarehouseTimeoutError
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail={"error": "validation_error", "message": str(exc)})
    if isinstance(exc, WarehouseTimeoutError):
        logger.warning("Warehouse timeout surfaced to caller", error=str(exc))
        return HTTPException(
            status_code=504,
            detail={"error": "warehouse_timeout", "message": str(exc), "retryable": True},
        )
    if isinstance(exc, InfraError):
        logger.error("Warehouse failure surfaced to caller", error=str(exc))
        return HTTPException(status_code=502, detail={"error": "warehouse_error", "message": str(exc)})
    logger.error("Unhandled engine error", error=str(exc), error_type=exc.__class__.__name__)
    return HTTPException(status_code=500, detail={"error": "internal_error", "message": "internal error"})
