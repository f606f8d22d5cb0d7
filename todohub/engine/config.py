"""
TodoHub Configuration — Load and validate todohub.yaml at startup.

Usage:
    from todohub.engine.config import load_config, get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from todohub.engine.errors import ConfigError

CONFIG_FILENAME = "todohub.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for todohub.yaml
# ---------------------------------------------------------------------------

class DatabaseConfig(BaseModel):
    url: str = "sqlite:///todohub.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    create_tables: bool = True


class RelayConfig(BaseModel):
    mode: str = "thread"
    max_queue_size: int = 10000

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        if v not in ("thread", "sync"):
            raise ValueError(f"relay mode must be thread/sync, got '{v}'")
        return v


class RealtimeConfig(BaseModel):
    room: str = "todos"
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://localhost:5173",
        ]
    )


class ReportsConfig(BaseModel):
    sheet_title: str = "TodoList Report"
    max_column_width: int = 50


class LogAsyncQueueConfig(BaseModel):
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class LoggingConfig(BaseModel):
    enabled: bool = True
    level: str = "INFO"
    directory: str = ".todohub/logs"
    async_queue: LogAsyncQueueConfig = LogAsyncQueueConfig()


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    api_prefix: str = "/api"


class TodoHubConfig(BaseModel):
    """Root model for todohub.yaml."""
    name: str = "TodoHub"
    version: str = "1.0.0"
    environment: str = "dev"

    database: DatabaseConfig = DatabaseConfig()
    relay: RelayConfig = RelayConfig()
    realtime: RealtimeConfig = RealtimeConfig()
    reports: ReportsConfig = ReportsConfig()
    logging: LoggingConfig = LoggingConfig()
    server: ServerConfig = ServerConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[TodoHubConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for todohub.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def _apply_env_overrides(data: dict) -> dict:
    db_url = os.environ.get("TODOHUB_DATABASE_URL")
    if db_url:
        data.setdefault("database", {})["url"] = db_url
    env = os.environ.get("TODOHUB_ENV")
    if env:
        data["environment"] = env
    return data


def load_config(config_path: Optional[str] = None) -> TodoHubConfig:
    """
    Load and validate todohub.yaml.

    Args:
        config_path: Explicit path to todohub.yaml. If None, auto-discovers.

    Returns:
        Validated TodoHubConfig instance. Defaults are used when no file exists.

    Raises:
        ConfigError: If the file is not valid YAML or fails validation.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    raw: dict = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}", error=str(e)) from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Expected a mapping at the top of {path}")

    # Allow the app settings to be nested under a top-level "todohub:" key
    data = dict(raw.get("todohub", raw))
    data = _apply_env_overrides(data)

    try:
        _config = TodoHubConfig(**data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}", error=str(e)) from e
    return _config


def get_config() -> TodoHubConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_environment() -> str:
    return get_config().environment
