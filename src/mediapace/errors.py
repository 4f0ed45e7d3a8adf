"""Error taxonomy for the pacing and billing engine."""

from __future__ import annotations

import re
import socket

WAREHOUSE_PREFIX = "[warehouse]"

_RETRYABLE_MARKERS = (
    "connection already in progress",
    "acquire timeout",
    "econnreset",
    "etimedout",
    "eai_again",
    "connection reset by peer",
    "temporary failure in name resolution",
)


class MediapaceError(Exception):
    """Base class for engine errors."""


class ValidationError(MediapaceError, ValueError):
    """Caller input is missing or malformed. Never retried."""


class InfraError(MediapaceError):
    """Warehouse or connection level failure."""


class TransientInfraError(InfraError):
    """Retryable condition: connection churn, acquire timeout, network blips."""


class FatalInfraError(InfraError):
    """Non-retryable infra failure, or retries exhausted."""

    def __init__(self, message: str):
        if not message.startswith(WAREHOUSE_PREFIX):
            message = f"{WAREHOUSE_PREFIX} {message}"
        super().__init__(message)


class WarehouseTimeoutError(InfraError, TimeoutError):
    """Statement exceeded its wall-clock budget and was cancelled."""

    def __init__(self, sql: str):
        self.sql_preview = summarize_sql(sql)
        super().__init__(f"{WAREHOUSE_PREFIX} timeout executing: {self.sql_preview}")


def summarize_sql(sql: str, limit: int = 60) -> str:
    return re.sub(r"\s+", " ", sql or "").strip()[:limit]


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (WarehouseTimeoutError, FatalInfraError)):
        return False
    if isinstance(exc, TransientInfraError):
        return True
    # Socket and driver level timeouts; statement timeouts were excluded above
    if isinstance(exc, TimeoutError):
        return True
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, socket.gaierror)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


def format_infra_error(exc: BaseException) -> str:
    message = str(exc) or exc.__class__.__name__
    if message.startswith(WAREHOUSE_PREFIX):
        return message
    return f"{WAREHOUSE_PREFIX} {message}"
