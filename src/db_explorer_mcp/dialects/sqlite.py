from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

from sqlalchemy.engine import URL
from sqlalchemy.pool import StaticPool

from ..db.models import (
    ColumnInfo,
    ExplainResult,
    ForeignKey,
    IndexInfo,
    TableDescription,
    TableSummary,
)
from ..guardrails import quote_identifier
from .base import Dialect, Executor, as_bool, as_count, as_text, row_value, scan_warning

_LIST_TABLES_SQL = (
    "SELECT name FROM sqlite_master "
    "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' "
    "ORDER BY name"
)
_COLUMNS_SQL = "SELECT cid, name, type, \"notnull\", dflt_value, pk FROM pragma_table_info(?) ORDER BY cid"
_FOREIGN_KEYS_SQL = 'SELECT "from", "table", "to" FROM pragma_foreign_key_list(?) ORDER BY id, seq'
_INDEX_LIST_SQL = 'SELECT name, "unique", origin, partial FROM pragma_index_list(?) ORDER BY name'
_INDEX_INFO_SQL = "SELECT seqno, name FROM pragma_index_info(?) ORDER BY seqno"
_INDEX_SQL_SQL = "SELECT sql FROM sqlite_master WHERE type = 'index' AND name = ?"

_SCAN_RE = re.compile(r"^SCAN\s+(?!(?:\d+\s+)?CONSTANT ROWS?\b)(?:TABLE\s+)?(\S+)")
_USING_INDEX_RE = re.compile(r"USING\s+(?:COVERING\s+)?INDEX\s+(\S+)")
_SEARCH_RE = re.compile(r"SEARCH\s+(?:TABLE\s+)?\S+\s+USING\s+(?:COVERING\s+)?INDEX\s+(\S+)")
_WHERE_RE = re.compile(r"\bWHERE\b(.*)$", re.IGNORECASE | re.DOTALL)


class SqliteDialect(Dialect):
    name = "sqlite"
    display_name = "SQLite"
    read_only_statement = "PRAGMA query_only = ON"
    query_hint = "SQLite: use date(), julianday(), IFNULL, no GROUP BY alias references"

    def build_url(self, connection_string: str) -> URL:
        path = connection_string
        for prefix in ("sqlite://", "sqlite:"):
            if path.startswith(prefix):
                path = path[len(prefix):]
                break
        if not path or path == ":memory:":
            return URL.create("sqlite", database=":memory:")
        # read-only open: a missing file fails instead of being created
        return URL.create(
            "sqlite", database=f"file:{quote(path)}", query={"mode": "ro", "uri": "true"}
        )

    def engine_options(self, pool_size: int) -> dict[str, Any]:
        # single writer: one shared connection regardless of pool_size
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }

    def list_tables(self, execute: Executor) -> list[TableSummary]:
        tables = []
        for row in execute(_LIST_TABLES_SQL):
            name = as_text(row_value(row, "name")) or ""
            # no statistics tables to read from, so count every row
            counted = execute(f"SELECT COUNT(*) AS cnt FROM {quote_identifier(name)}")
            count = row_value(counted[0], "cnt") if counted else 0
            tables.append(TableSummary(name=name, estimated_row_count=as_count(count)))
        return tables

    def describe_table(self, execute: Executor, table: str) -> TableDescription:
        columns = []
        for row in execute(_COLUMNS_SQL, (table,)):
            is_primary_key = as_count(row_value(row, "pk")) > 0
            columns.append(
                ColumnInfo(
                    name=as_text(row_value(row, "name")) or "",
                    type=as_text(row_value(row, "type")) or "TEXT",
                    nullable=not as_bool(row_value(row, "notnull")) and not is_primary_key,
                    default_value=as_text(row_value(row, "dflt_value")),
                    is_primary_key=is_primary_key,
                )
            )

        foreign_keys = [
            ForeignKey(
                column=as_text(row_value(row, "from")) or "",
                referenced_table=as_text(row_value(row, "table")) or "",
                referenced_column=as_text(row_value(row, "to")) or "",
            )
            for row in execute(_FOREIGN_KEYS_SQL, (table,))
        ]

        indexes = [self._index(execute, row) for row in execute(_INDEX_LIST_SQL, (table,))]
        return TableDescription(
            name=table, columns=columns, foreign_keys=foreign_keys, indexes=indexes
        )

    def _index(self, execute: Executor, row: Any) -> IndexInfo:
        name = as_text(row_value(row, "name")) or ""
        key_columns = [
            as_text(row_value(info, "name")) or ""
            for info in execute(_INDEX_INFO_SQL, (name,))
        ]
        predicate = None
        if as_bool(row_value(row, "partial")):
            stored = execute(_INDEX_SQL_SQL, (name,))
            predicate = extract_partial_predicate(
                as_text(row_value(stored[0], "sql")) if stored else None
            )
        return IndexInfo(
            name=name,
            columns=key_columns,
            unique=as_bool(row_value(row, "unique")),
            is_primary=row_value(row, "origin") == "pk",
            partial_predicate=predicate,
        )

    def explain(self, execute: Executor, sql: str, result: ExplainResult) -> None:
        for row in execute(f"EXPLAIN QUERY PLAN {sql}"):
            read_plan_line(as_text(row_value(row, "detail")) or "", result)


def read_plan_line(detail: str, result: ExplainResult) -> None:
    scan = _SCAN_RE.match(detail)
    if scan:
        using_index = _USING_INDEX_RE.search(detail)
        if using_index:
            result.add_index(using_index.group(1))
        else:
            table = scan.group(1)
            result.sequential_scans.append(table)
            result.warnings.append(scan_warning(table))

    search = _SEARCH_RE.search(detail)
    if search:
        result.add_index(search.group(1))


def extract_partial_predicate(create_sql: str | None) -> str | None:
    """``WHERE`` clause of a stored ``CREATE INDEX`` statement."""
    if not create_sql:
        return None
    match = _WHERE_RE.search(create_sql)
    if not match:
        return None
    return match.group(1).strip().rstrip(";").strip() or None
