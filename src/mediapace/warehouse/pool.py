"""Bounded, retrying connection pool for the analytics warehouse.

One unit of work is acquire -> init session (once per connection) -> run ->
release. A connection that errored is released and then destroyed. Only
transient conditions are retried, with ``base * 2**attempt`` backoff.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence

from ..errors import (
    FatalInfraError,
    TransientInfraError,
    WarehouseTimeoutError,
    format_infra_error,
    is_retryable,
    summarize_sql,
)
from ..utils.config_loader import PoolSettings
from ..utils.logging_config import StructuredLogger
from .drivers import ConnectionFactory, WarehouseConnection
from .results import QueryOutcome

logger = StructuredLogger(__name__)


def _drain(task: asyncio.Task) -> None:
    # Retrieve the outcome of an abandoned statement so asyncio does not warn
    if not task.cancelled():
        task.exception()


class WarehousePool:
    def __init__(
        self,
        connect: ConnectionFactory,
        settings: Optional[PoolSettings] = None,
        *,
        timezone: str = "Australia/Melbourne",
        query_tag: str = "mediapace_pacing",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or PoolSettings()
        self.timezone = timezone
        self.query_tag = query_tag
        self._connect = connect
        self._sleep = sleep
        self._slots = asyncio.Semaphore(self.settings.max_connections)
        self._idle: list[WarehouseConnection] = []
        self._open = 0
        self._closed = False

    # --- pool bookkeeping ---

    def stats(self) -> dict[str, int]:
        return {
            "open": self._open,
            "idle": len(self._idle),
            "max": self.settings.max_connections,
            "min": self.settings.min_connections,
        }

    async def _new_connection(self) -> WarehouseConnection:
        conn = await self._connect()
        self._open += 1
        logger.debug("Warehouse connection opened", open=self._open)
        return conn

    async def warm(self) -> None:
        """Open connections up to the configured minimum."""
        while self._open < self.settings.min_connections:
            self._idle.append(await self._new_connection())

    async def _acquire(self) -> WarehouseConnection:
        if self._closed:
            raise FatalInfraError("pool is closed")
        timeout = self.settings.acquire_timeout_ms / 1000
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TransientInfraError(f"acquire timeout after {self.settings.acquire_timeout_ms}ms") from None

        try:
            if self._idle:
                return self._idle.pop()
            try:
                return await asyncio.wait_for(self._new_connection(), timeout=timeout)
            except asyncio.TimeoutError:
                raise TransientInfraError("acquire timeout while connecting") from None
        except BaseException:
            self._slots.release()
            raise

    async def _release(self, conn: WarehouseConnection, destroy: bool) -> None:
        # Free the slot first, then drop the dead connection
        if not destroy and not self._closed:
            self._idle.append(conn)
        self._slots.release()
        if destroy or self._closed:
            await self._destroy(conn)

    async def _destroy(self, conn: WarehouseConnection) -> None:
        self._open = max(0, self._open - 1)
        try:
            await conn.close()
        except Exception as exc:
            logger.warning("Failed to destroy warehouse connection", error=str(exc))

    async def _ensure_session(self, conn: WarehouseConnection) -> None:
        if conn.initialized:
            return
        try:
            await asyncio.wait_for(
                conn.init_session(
                    timezone=self.timezone,
                    statement_timeout_seconds=self.settings.statement_timeout_seconds,
                    query_tag=self.query_tag,
                ),
                timeout=self.settings.init_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            raise FatalInfraError(f"session init timed out after {self.settings.init_timeout_ms}ms") from None
        conn.initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[WarehouseConnection]:
        conn = await self._acquire()
        failed = False
        try:
            await self._ensure_session(conn)
            yield conn
        except BaseException:
            failed = True
            raise
        finally:
            await self._release(conn, destroy=failed)

    async def close(self) -> None:
        self._closed = True
        idle, self._idle = self._idle, []
        for conn in idle:
            await self._destroy(conn)

    # --- execution ---

    async def _run_with_timeout(self, conn: WarehouseConnection, sql: str, binds: Sequence[Any]) -> list[dict[str, Any]]:
        task = asyncio.ensure_future(conn.execute(sql, binds))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.settings.execute_timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()

        logger.warning(
            "Warehouse statement timed out, cancelling",
            timeout_ms=self.settings.execute_timeout_ms,
            sql=summarize_sql(sql),
        )
        try:
            await asyncio.wait_for(conn.cancel(), timeout=self.settings.cancel_timeout_ms / 1000)
        except Exception as exc:
            logger.warning("Statement cancel did not complete", error=str(exc) or exc.__class__.__name__)
        task.add_done_callback(_drain)
        task.cancel()
        raise WarehouseTimeoutError(sql)

    async def _execute_once(self, sql: str, binds: Sequence[Any]) -> list[dict[str, Any]]:
        async with self.connection() as conn:
            rows = await self._run_with_timeout(conn, sql, binds)
        return [dict(row) for row in rows or []]

    async def execute(self, sql: str, binds: Optional[Sequence[Any]] = None) -> list[dict[str, Any]]:
        """Run a parameterized statement (``?`` binds). Returns rows, possibly empty, or raises."""
        binds = list(binds or [])
        attempt = 0
        while True:
            try:
                return await self._execute_once(sql, binds)
            except (WarehouseTimeoutError, FatalInfraError):
                raise
            except Exception as exc:
                if not is_retryable(exc):
                    logger.error("Warehouse query failed", error=str(exc), sql=summarize_sql(sql))
                    raise FatalInfraError(format_infra_error(exc)) from exc
                if attempt >= self.settings.max_retries:
                    logger.error("Warehouse retries exhausted", attempts=attempt + 1, error=str(exc))
                    raise FatalInfraError(f"retries exhausted after {attempt + 1} attempts: {exc}") from exc
                delay_ms = self.settings.backoff_base_ms * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "Transient warehouse error, backing off",
                    attempt=attempt,
                    delay_ms=delay_ms,
                    error=str(exc),
                )
                await self._sleep(delay_ms / 1000)

    async def try_execute(self, sql: str, binds: Optional[Sequence[Any]] = None) -> QueryOutcome:
        """Like execute, but reports empty and failed results as values."""
        try:
            rows = await self.execute(sql, binds)
        except (FatalInfraError, WarehouseTimeoutError) as exc:
            return QueryOutcome.failed(exc)
        return QueryOutcome.from_rows(rows)
