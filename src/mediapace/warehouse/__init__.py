"""Analytics warehouse access: drivers, pool and query outcomes."""

from .drivers import ConnectionFactory, PostgresConnection, SnowflakeConnection, WarehouseConnection, connection_factory
from .pool import WarehousePool
from .results import QueryOutcome, QueryStatus

__all__ = [
    "ConnectionFactory",
    "PostgresConnection",
    "SnowflakeConnection",
    "WarehouseConnection",
    "WarehousePool",
    "QueryOutcome",
    "QueryStatus",
    "connection_factory",
]
