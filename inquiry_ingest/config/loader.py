from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.schema import ALLOWED_EXTENSIONS, MAX_UPLOAD_BYTES, TASK_TIMEOUT_MS

"""Config loader for the inquiry ingestion tool.

Responsibilities:
- Load YAML config (default: config/ingest.yml)
- Validate against the bundled JSON schema (unknown keys rejected)
- Apply defaults (timeout 5000 ms, 5 MB upload limit, .xlsx/.xls/.csv)
- Resolve database connection settings (environment > config file)
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "UploadConfig",
    "IngestConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "resolve_dsn",
]

DEFAULT_CONFIG_PATH = Path("config/ingest.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class UploadConfig:
    max_bytes: int = MAX_UPLOAD_BYTES
    allowed_extensions: tuple[str, ...] = ALLOWED_EXTENSIONS


@dataclass(frozen=True)
class IngestConfig:
    timeout_ms: int = TASK_TIMEOUT_MS
    log_dir: str = "./logs"
    upload: UploadConfig = field(default_factory=UploadConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing / invalid, or data fails validation
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


def load_config(path: Path | None = None) -> IngestConfig:
    """Load and validate the config file.

    ``path=None`` means the default location; if that file does not exist the
    built-in defaults are returned. An explicitly given path must exist.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return IngestConfig()
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    upload_raw = data.get("upload", {})
    upload = UploadConfig(
        max_bytes=upload_raw.get("max_bytes", MAX_UPLOAD_BYTES),
        allowed_extensions=tuple(
            ext.lower() for ext in upload_raw.get("allowed_extensions", ALLOWED_EXTENSIONS)
        ),
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
    return IngestConfig(
        timeout_ms=data.get("timeout_ms", TASK_TIMEOUT_MS),
        log_dir=data.get("log_dir", "./logs"),
        upload=upload,
        database=db,
    )


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build a libpq DSN.

    優先順位:
        1. DATABASE_URL / PGDSN 環境変数 (.env 読込済み想定)
        2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config の database セクション
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
