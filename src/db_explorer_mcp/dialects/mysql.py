from __future__ import annotations

import json
from typing import Any

from sqlalchemy.engine import URL, make_url

from ..db.models import (
    ColumnInfo,
    ExplainResult,
    ForeignKey,
    IndexInfo,
    TableDescription,
    TableSummary,
)
from ..errors import PlanParseError
from .base import (
    Dialect,
    Executor,
    as_bool,
    as_count,
    as_optional_count,
    as_text,
    first_row,
    row_value,
    scan_warning,
    split_columns,
)

_LIST_TABLES_SQL = """
SELECT
  TABLE_NAME AS name,
  TABLE_ROWS AS estimated_rows
FROM information_schema.TABLES
WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = 'BASE TABLE'
ORDER BY TABLE_NAME
"""

_COLUMNS_SQL = """
SELECT
  COLUMN_NAME AS name,
  COLUMN_TYPE AS type,
  IS_NULLABLE = 'YES' AS nullable,
  COLUMN_DEFAULT AS default_value,
  COLUMN_KEY = 'PRI' AS is_primary_key
FROM information_schema.COLUMNS
WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s
ORDER BY ORDINAL_POSITION
"""

_FOREIGN_KEYS_SQL = """
SELECT
  COLUMN_NAME AS column_name,
  REFERENCED_TABLE_NAME AS referenced_table,
  REFERENCED_COLUMN_NAME AS referenced_column
FROM information_schema.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s
  AND REFERENCED_TABLE_NAME IS NOT NULL
ORDER BY CONSTRAINT_NAME, ORDINAL_POSITION
"""

_INDEXES_SQL = """
SELECT
  INDEX_NAME AS name,
  NOT NON_UNIQUE AS is_unique,
  INDEX_TYPE AS index_type,
  MAX(CARDINALITY) AS cardinality,
  GROUP_CONCAT(COLUMN_NAME ORDER BY SEQ_IN_INDEX SEPARATOR ',') AS columns
FROM information_schema.STATISTICS
WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s
GROUP BY INDEX_NAME, NON_UNIQUE, INDEX_TYPE
ORDER BY INDEX_NAME
"""

# access_type reported for a full table scan
_FULL_SCAN = "ALL"


class MysqlDialect(Dialect):
    name = "mysql"
    display_name = "MySQL"
    read_only_statement = "SET SESSION TRANSACTION READ ONLY"
    query_hint = "MySQL: use DATE_SUB(), CURDATE(), IFNULL, backtick-quoted identifiers"

    def build_url(self, connection_string: str) -> URL:
        return make_url(connection_string).set(drivername="mysql+mysqlconnector")

    def list_tables(self, execute: Executor) -> list[TableSummary]:
        rows = execute(_LIST_TABLES_SQL)
        return [
            TableSummary(
                name=as_text(row_value(row, "name", "TABLE_NAME")) or "",
                estimated_row_count=as_count(row_value(row, "estimated_rows", "TABLE_ROWS")),
            )
            for row in rows
        ]

    def describe_table(self, execute: Executor, table: str) -> TableDescription:
        columns = execute(_COLUMNS_SQL, (table,))
        foreign_keys = execute(_FOREIGN_KEYS_SQL, (table,))
        indexes = execute(_INDEXES_SQL, (table,))
        return TableDescription(
            name=table,
            columns=[
                ColumnInfo(
                    name=as_text(row_value(row, "name", "COLUMN_NAME")) or "",
                    type=as_text(row_value(row, "type", "COLUMN_TYPE")) or "",
                    nullable=as_bool(row_value(row, "nullable")),
                    default_value=as_text(row_value(row, "default_value", "COLUMN_DEFAULT")),
                    is_primary_key=as_bool(row_value(row, "is_primary_key")),
                )
                for row in columns
            ],
            foreign_keys=[
                ForeignKey(
                    column=as_text(row_value(row, "column_name")) or "",
                    referenced_table=as_text(
                        row_value(row, "referenced_table", "REFERENCED_TABLE_NAME")
                    )
                    or "",
                    referenced_column=as_text(
                        row_value(row, "referenced_column", "REFERENCED_COLUMN_NAME")
                    )
                    or "",
                )
                for row in foreign_keys
            ],
            indexes=[self._index(row) for row in indexes],
        )

    def _index(self, row: Any) -> IndexInfo:
        name = as_text(row_value(row, "name", "INDEX_NAME")) or ""
        return IndexInfo(
            name=name,
            columns=split_columns(row_value(row, "columns")),
            unique=as_bool(row_value(row, "is_unique")),
            type=as_text(row_value(row, "index_type", "INDEX_TYPE")),
            is_primary=name == "PRIMARY",
            cardinality=as_optional_count(row_value(row, "cardinality", "CARDINALITY")),
        )

    def explain(self, execute: Executor, sql: str, result: ExplainResult) -> None:
        rows = execute(f"EXPLAIN FORMAT=JSON {sql}")
        row = first_row(rows)
        if row is None:
            return
        raw = row_value(row, "EXPLAIN")
        if raw is None:
            return
        if isinstance(raw, (str, bytes, bytearray)):
            try:
                document = json.loads(raw)
            except ValueError as exc:
                raise PlanParseError(f"Plan is not valid JSON: {exc}") from exc
        else:
            document = raw
        _walk_tables(document, result)


def _walk_tables(value: Any, result: ExplainResult) -> None:
    """Visit every object in the plan; the nesting differs per query shape."""
    if isinstance(value, list):
        for item in value:
            _walk_tables(item, result)
        return
    if not isinstance(value, dict):
        return

    if "access_type" in value and "table_name" in value:
        _record_table_access(value, result)

    for child in value.values():
        if isinstance(child, (dict, list)):
            _walk_tables(child, result)


def _record_table_access(table: dict[str, Any], result: ExplainResult) -> None:
    table_name = table.get("table_name")
    examined = table.get("rows_examined_per_scan")
    if table.get("access_type") == _FULL_SCAN and table_name:
        result.sequential_scans.append(table_name)
        result.warnings.append(scan_warning(table_name, as_count(examined)))
    key = table.get("key")
    if key:
        result.add_index(key)
    if examined is not None:
        result.observe_rows(as_count(examined))
