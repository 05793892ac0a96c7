"""Dialect strategy interface.

Each backend implements catalog listing, table description and plan
reduction once; callers only ever talk to a :class:`Dialect`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy.engine import URL

from ..db.models import ExplainResult, TableDescription, TableSummary

Row = Mapping[str, Any]
Executor = Callable[..., list[dict[str, Any]]]


class Dialect(ABC):
    name: str
    display_name: str
    read_only_statement: str
    query_hint: str

    @abstractmethod
    def build_url(self, connection_string: str) -> URL:
        """Turn a user connection string into a SQLAlchemy URL for this backend."""

    def engine_options(self, pool_size: int) -> dict[str, Any]:
        return {"pool_size": pool_size, "max_overflow": 0}

    @abstractmethod
    def list_tables(self, execute: Executor) -> list[TableSummary]: ...

    @abstractmethod
    def describe_table(self, execute: Executor, table: str) -> TableDescription: ...

    @abstractmethod
    def explain(self, execute: Executor, sql: str, result: ExplainResult) -> None:
        """Fill ``result`` from the backend's native plan for ``sql``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def row_value(row: Row, *keys: str) -> Any:
    """First non-null value among ``keys``; drivers disagree on key casing."""
    for key in keys:
        for candidate in (key, key.upper(), key.lower()):
            value = row.get(candidate)
            if value is not None:
                return value
    return None


def as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def as_bool(value: Any) -> bool:
    value = as_text(value) if isinstance(value, (bytes, bytearray)) else value
    if isinstance(value, str):
        return value.strip().upper() in {"1", "YES", "TRUE", "T", "Y"}
    return bool(value)


def as_count(value: Any) -> int:
    """Row estimates: absent or negative means unknown, reported as 0."""
    if value is None:
        return 0
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


def as_optional_count(value: Any) -> int | None:
    if value is None:
        return None
    return as_count(value)


def split_columns(value: Any) -> list[str]:
    """Index key columns arrive as a list, a ``{a,b}`` array literal or ``a,b``."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [as_text(v) or "" for v in value]
    text = as_text(value) or ""
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1]
    return [part.strip().strip('"') for part in text.split(",") if part.strip()]


def first_row(rows: Sequence[Row]) -> Row | None:
    return rows[0] if rows else None


def format_row_count(n: int) -> str:
    if n >= 1_000_000:
        return f"~{int(n / 1_000_000 + 0.5)}M"
    if n >= 1_000:
        return f"~{int(n / 1_000 + 0.5)}K"
    return f"~{n}"


def scan_warning(table: str, rows: int = 0) -> str:
    estimate = f" ({format_row_count(rows)} rows)" if rows > 0 else ""
    return f"Sequential scan on '{table}'{estimate}; consider filtering on an indexed column"
