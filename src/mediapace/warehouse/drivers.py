"""Warehouse driver adapters.

Both adapters expose the same async surface to the pool: ``init_session``,
``execute``, ``cancel`` and ``close``. Rows come back as plain dicts.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol, Sequence

from ..utils.config_loader import WarehouseSettings


class WarehouseConnection(Protocol):
    initialized: bool

    async def init_session(self, *, timezone: str, statement_timeout_seconds: int, query_tag: str) -> None: ...

    async def execute(self, sql: str, binds: Sequence[Any]) -> list[dict[str, Any]]: ...

    async def cancel(self) -> None: ...

    async def close(self) -> None: ...


ConnectionFactory = Callable[[], Awaitable[WarehouseConnection]]


def _quote_literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def to_pyformat(sql: str) -> str:
    """Translate ``?`` placeholders to ``%s`` outside quotes and escape literal ``%``."""
    out: list[str] = []
    in_single = False
    in_double = False
    for ch in sql:
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "%":
            out.append("%%")
            continue
        elif ch == "?" and not in_single and not in_double:
            out.append("%s")
            continue
        out.append(ch)
    return "".join(out)


class SnowflakeConnection:
    """snowflake-connector-python connection; blocking calls run in a worker thread."""

    def __init__(self, raw: Any, dict_cursor: Any = None):
        self._conn = raw
        self._dict_cursor = dict_cursor
        self.initialized = False

    @classmethod
    async def connect(cls, settings: WarehouseSettings) -> "SnowflakeConnection":
        try:
            import snowflake.connector
            from snowflake.connector import DictCursor
        except ImportError as exc:
            raise RuntimeError(
                "snowflake-connector-python is required for the snowflake driver. "
                "Install with: pip install snowflake-connector-python"
            ) from exc

        raw = await asyncio.to_thread(
            snowflake.connector.connect,
            user=settings.user,
            password=settings.password,
            account=settings.account,
            warehouse=settings.warehouse,
            database=settings.database,
            schema=settings.schema_name,
            role=settings.role,
            paramstyle="qmark",
            client_session_keep_alive=True,
        )
        return cls(raw, DictCursor)

    async def init_session(self, *, timezone: str, statement_timeout_seconds: int, query_tag: str) -> None:
        for statement in (
            f"ALTER SESSION SET TIMEZONE = {_quote_literal(timezone)}",
            f"ALTER SESSION SET STATEMENT_TIMEOUT_IN_SECONDS = {int(statement_timeout_seconds)}",
            f"ALTER SESSION SET QUERY_TAG = {_quote_literal(query_tag)}",
        ):
            await self.execute(statement, [])

    def _execute_sync(self, sql: str, binds: Sequence[Any]) -> list[dict[str, Any]]:
        cur = self._conn.cursor(self._dict_cursor) if self._dict_cursor else self._conn.cursor()
        try:
            cur.execute(sql, list(binds) if binds else None)
            if not cur.description:
                return []
            return [dict(row) for row in cur.fetchall()]
        finally:
            cur.close()

    async def execute(self, sql: str, binds: Sequence[Any]) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._execute_sync, sql, binds)

    def _cancel_sync(self) -> None:
        session_id = getattr(self._conn, "session_id", None)
        if session_id is None:
            return
        cur = self._conn.cursor()
        try:
            cur.execute("SELECT SYSTEM$CANCEL_ALL_QUERIES(?)", [session_id])
        finally:
            cur.close()

    async def cancel(self) -> None:
        await asyncio.to_thread(self._cancel_sync)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


class PostgresConnection:
    """psycopg 3 async connection for PostgreSQL-compatible marts."""

    def __init__(self, raw: Any):
        self._conn = raw
        self.initialized = False

    @classmethod
    async def connect(cls, settings: WarehouseSettings) -> "PostgresConnection":
        dsn = (settings.dsn or "").strip()
        if not dsn:
            raise RuntimeError("MEDIAPACE_WAREHOUSE_DSN is required for the postgres driver")
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:
            raise RuntimeError(
                "psycopg is required for the postgres driver. Install with: pip install \"psycopg[binary]>=3.2\""
            ) from exc

        raw = await psycopg.AsyncConnection.connect(dsn, row_factory=dict_row, autocommit=True)
        return cls(raw)

    async def init_session(self, *, timezone: str, statement_timeout_seconds: int, query_tag: str) -> None:
        await self.execute(
            "SELECT set_config('TimeZone', ?, false), "
            "set_config('statement_timeout', ?, false), "
            "set_config('application_name', ?, false)",
            [timezone, f"{int(statement_timeout_seconds) * 1000}", query_tag],
        )

    async def execute(self, sql: str, binds: Sequence[Any]) -> list[dict[str, Any]]:
        async with self._conn.cursor() as cur:
            if binds:
                await cur.execute(to_pyformat(sql), list(binds))
            else:
                await cur.execute(sql)
            if cur.description is None:
                return []
            return [dict(row) for row in await cur.fetchall()]

    async def cancel(self) -> None:
        await self._conn.cancel_safe()

    async def close(self) -> None:
        await self._conn.close()


def connection_factory(settings: WarehouseSettings) -> ConnectionFactory:
    if settings.driver == "postgres":
        return lambda: PostgresConnection.connect(settings)
    return lambda: SnowflakeConnection.connect(settings)
