from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..services.sanitizer import CSV_TO_DB_COLUMNS, DEFAULT_NULL_SENTINELS

"""Configuration loader.

Responsibilities:
- Load the YAML config (default config/risk_register.yml)
- Validate it against config_schema.json (shipped next to this module)
- Apply defaults for every optional key
"""

__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "UploadConfig",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/risk_register.yml")
DEFAULT_DATA_STORE = "./data/risk_data.json"
DEFAULT_PAGE_SIZE = 50


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Fallback connection settings; environment variables take precedence."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class UploadConfig:
    required_headers: list[str] = field(default_factory=lambda: list(CSV_TO_DB_COLUMNS))
    null_sentinels: set[str] = field(default_factory=lambda: set(DEFAULT_NULL_SENTINELS))


@dataclass(frozen=True)
class AppConfig:
    data_store: Path
    page_size: int
    upload: UploadConfig
    database: DatabaseConfig


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    upload_raw = data.get("upload", {})
    upload = UploadConfig()
    if "required_headers" in upload_raw:
        upload = UploadConfig(required_headers=list(upload_raw["required_headers"]), null_sentinels=upload.null_sentinels)
    if "null_sentinels" in upload_raw:
        upload = UploadConfig(
            required_headers=upload.required_headers,
            null_sentinels={s.strip().upper() for s in upload_raw["null_sentinels"]},
        )

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return AppConfig(
        data_store=Path(data.get("data_store", DEFAULT_DATA_STORE)),
        page_size=data.get("page_size", DEFAULT_PAGE_SIZE),
        upload=upload,
        database=db,
    )
