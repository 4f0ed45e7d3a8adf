import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

# --- Settings models ---


class PoolSettings(BaseModel):
    min_connections: int = Field(0, ge=0)
    max_connections: int = Field(8, ge=1)
    acquire_timeout_ms: int = Field(60_000, ge=1)
    execute_timeout_ms: int = Field(55_000, ge=1)
    init_timeout_ms: int = Field(8_000, ge=1)
    cancel_timeout_ms: int = Field(2_000, ge=1)
    statement_timeout_seconds: int = Field(60, ge=1)
    backoff_base_ms: int = Field(250, ge=0)
    max_retries: int = Field(4, ge=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min_connections > self.max_connections:
            raise ValueError("min_connections cannot exceed max_connections")
        return self


class CacheSettings(BaseModel):
    ttl_seconds: int = Field(60, ge=0)


class PacingSettings(BaseModel):
    max_range_days: int = Field(180, ge=1)
    max_ids: int = Field(500, ge=1)
    row_limit: int = Field(50_000, ge=1)
    allowed_channels: list[str] = Field(
        default_factory=lambda: ["meta", "tiktok", "programmatic-display", "programmatic-video"]
    )
    debug: bool = False

    @field_validator("allowed_channels")
    def lowercase_channels(cls, v):
        return [c.strip().lower() for c in v if c and c.strip()]


class WarehouseSettings(BaseModel):
    driver: Literal["snowflake", "postgres"] = "snowflake"
    account: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    warehouse: Optional[str] = None
    database: Optional[str] = None
    schema_name: Optional[str] = None
    role: Optional[str] = None
    dsn: Optional[str] = None
    query_tag: str = "mediapace_pacing"
    timezone: str = "Australia/Melbourne"
    pacing_table: str = "PACING_FACT"
    search_table: str = "SEARCH_PACING_FACT"


class EngineSettings(BaseModel):
    version: int = Field(1, ge=1, le=1)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    pacing: PacingSettings = Field(default_factory=PacingSettings)
    warehouse: WarehouseSettings = Field(default_factory=WarehouseSettings)


# Environment overrides: variable -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PACE_CACHE_SECONDS": ("cache", "ttl_seconds"),
    "MEDIAPACE_POOL_MIN": ("pool", "min_connections"),
    "MEDIAPACE_POOL_MAX": ("pool", "max_connections"),
    "MEDIAPACE_ACQUIRE_TIMEOUT_MS": ("pool", "acquire_timeout_ms"),
    "MEDIAPACE_EXECUTE_TIMEOUT_MS": ("pool", "execute_timeout_ms"),
    "MEDIAPACE_STATEMENT_TIMEOUT_SECONDS": ("pool", "statement_timeout_seconds"),
    "MEDIAPACE_MAX_RETRIES": ("pool", "max_retries"),
    "MEDIAPACE_MAX_RANGE_DAYS": ("pacing", "max_range_days"),
    "MEDIAPACE_MAX_IDS": ("pacing", "max_ids"),
    "MEDIAPACE_ROW_LIMIT": ("pacing", "row_limit"),
    "MEDIAPACE_PACING_DEBUG": ("pacing", "debug"),
    "MEDIAPACE_WAREHOUSE_DRIVER": ("warehouse", "driver"),
    "SNOWFLAKE_ACCOUNT": ("warehouse", "account"),
    "SNOWFLAKE_USER": ("warehouse", "user"),
    "SNOWFLAKE_PASSWORD": ("warehouse", "password"),
    "SNOWFLAKE_WAREHOUSE": ("warehouse", "warehouse"),
    "SNOWFLAKE_DATABASE": ("warehouse", "database"),
    "SNOWFLAKE_SCHEMA": ("warehouse", "schema_name"),
    "SNOWFLAKE_ROLE": ("warehouse", "role"),
    "MEDIAPACE_WAREHOUSE_DSN": ("warehouse", "dsn"),
    "MEDIAPACE_QUERY_TAG": ("warehouse", "query_tag"),
    "MEDIAPACE_TIMEZONE": ("warehouse", "timezone"),
    "MEDIAPACE_PACING_TABLE": ("warehouse", "pacing_table"),
    "MEDIAPACE_SEARCH_TABLE": ("warehouse", "search_table"),
}


def _apply_env_overrides(raw: dict) -> dict:
    data = {k: dict(v) if isinstance(v, dict) else v for k, v in raw.items()}
    for var, (section, field) in _ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value is None or value.strip() == "":
            continue
        data.setdefault(section, {})
        data[section][field] = value.strip()
    # Production keeps one warm connection unless told otherwise
    if os.getenv("MEDIAPACE_ENV", "").strip().lower() == "production":
        data.setdefault("pool", {}).setdefault("min_connections", 1)
    return data


# --- Config Loader (Atomic Reload) ---

class ConfigLoader:
    def __init__(self, config_file: str | os.PathLike | None = None):
        path = config_file or os.getenv("MEDIAPACE_CONFIG_FILE")
        self.config_file: Optional[Path] = Path(path) if path else None
        self.config: Optional[EngineSettings] = None

    def load_config(self) -> EngineSettings:
        """
        Loads settings from the optional YAML file plus environment overrides.
        ATOMIC: On failure, previous config is preserved.
        Raises ValueError if invalid.
        """
        if self.config_file is not None and not self.config_file.exists():
            logger.critical("Config file not found", path=str(self.config_file))
            raise FileNotFoundError(f"Config file not found at {self.config_file}")

        try:
            raw_data: Any = {}
            if self.config_file is not None:
                logger.info("Loading configuration", path=str(self.config_file))
                with open(self.config_file, "r") as f:
                    raw_data = yaml.safe_load(f) or {}
            if not isinstance(raw_data, dict):
                raise ValueError("top-level YAML must be a mapping")
            new_config = EngineSettings(**_apply_env_overrides(raw_data))
        except (ValueError, yaml.YAMLError) as e:
            logger.error("Configuration validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}") from e
            raise ValueError(f"Invalid configuration (no fallback): {e}") from e

        self.config = new_config
        logger.info(
            "Configuration loaded",
            driver=new_config.warehouse.driver,
            pool_max=new_config.pool.max_connections,
            cache_ttl=new_config.cache.ttl_seconds,
        )
        return self.config

    def get(self) -> EngineSettings:
        if not self.config:
            self.load_config()
        return self.config
