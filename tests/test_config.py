from pathlib import Path

import pytest

from db_explorer_mcp.config import load_config
from db_explorer_mcp.errors import ConfigError


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.yml"
    path.write_text(content)
    return path


def test_defaults_without_file() -> None:
    config = load_config(None, env={})
    assert config.connection.default_connection_string is None
    assert config.connection.pool_size == 5
    assert config.limits.max_rows == 1000
    assert config.limits.max_schema_tables == 100
    assert config.observability.log_level == "info"


def test_connection_string_falls_back_to_environment() -> None:
    config = load_config(None, env={"DB_CONNECTION_STRING": "sqlite:///tmp/app.db"})
    assert config.connection.default_connection_string == "sqlite:///tmp/app.db"


def test_env_substitution(tmp_path: Path) -> None:
    cfg_path = write_config(
        tmp_path,
        """
connection:
  default_connection_string: ${APP_DB_URL}
  pool_size: 2
limits:
  max_rows: 50
  max_schema_tables: 10
observability:
  log_level: debug
""",
    )

    config = load_config(cfg_path, env={"APP_DB_URL": "postgres://app:secret@db/app"})
    assert config.connection.default_connection_string == "postgres://app:secret@db/app"
    assert config.connection.pool_size == 2
    assert config.limits.max_rows == 50
    assert config.limits.max_schema_tables == 10
    assert config.observability.log_level == "debug"


def test_missing_environment_variable(tmp_path: Path) -> None:
    cfg_path = write_config(
        tmp_path,
        """
connection:
  default_connection_string: ${APP_DB_URL}
""",
    )
    with pytest.raises(ConfigError, match="APP_DB_URL"):
        load_config(cfg_path, env={})


def test_invalid_limits(tmp_path: Path) -> None:
    cfg_path = write_config(
        tmp_path,
        """
limits:
  max_rows: 0
""",
    )
    with pytest.raises(ConfigError, match="max_rows"):
        load_config(cfg_path, env={})


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "absent.yml", env={})
