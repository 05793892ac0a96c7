from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError

DEFAULT_CONNECTION_ENV = "DB_CONNECTION_STRING"


@dataclass
class ConnectionConfig:
    default_connection_string: str | None = None
    pool_size: int = 5


@dataclass
class LimitsConfig:
    max_rows: int = 1000
    max_schema_tables: int = 100


@dataclass
class ObservabilityConfig:
    log_level: str = "info"


@dataclass
class AppConfig:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)


def _resolve_env(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        if expanded.startswith("${") and expanded.endswith("}"):
            key = expanded[2:-1]
            if key not in env:
                raise ConfigError(f"Environment variable {key} is required but not set")
            return env[key]
        return expanded
    if isinstance(value, list):
        return [_resolve_env(v, env) for v in value]
    if isinstance(value, dict):
        return {k: _resolve_env(v, env) for k, v in value.items()}
    return value


def _validate_positive(value: Any, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc
    if number <= 0:
        raise ConfigError(f"{field_name} must be greater than 0")
    return number


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Config section {name} must be a mapping")
    return value


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    """Load the server configuration.

    With no path every setting takes its default. The default connection
    string falls back to the ``DB_CONNECTION_STRING`` environment variable.
    """
    env = env if env is not None else os.environ
    raw: Any = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file {config_path} does not exist")
        raw = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(raw, Mapping):
        raise ConfigError("Config file must contain a mapping")
    resolved = _resolve_env(raw, env)

    connection_raw = _section(resolved, "connection")
    limits_raw = _section(resolved, "limits")
    observability_raw = _section(resolved, "observability")

    default_connection = connection_raw.get("default_connection_string") or env.get(
        DEFAULT_CONNECTION_ENV
    )

    connection = ConnectionConfig(
        default_connection_string=default_connection or None,
        pool_size=_validate_positive(connection_raw.get("pool_size", 5), "pool_size"),
    )

    limits = LimitsConfig(
        max_rows=_validate_positive(limits_raw.get("max_rows", 1000), "max_rows"),
        max_schema_tables=_validate_positive(
            limits_raw.get("max_schema_tables", 100), "max_schema_tables"
        ),
    )

    observability = ObservabilityConfig(
        log_level=str(observability_raw.get("log_level", "info")),
    )

    return AppConfig(
        connection=connection,
        limits=limits,
        observability=observability,
    )
