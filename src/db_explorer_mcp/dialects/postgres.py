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
    as_text,
    first_row,
    row_value,
    scan_warning,
    split_columns,
)

_LIST_TABLES_SQL = """
SELECT
  t.tablename AS name,
  COALESCE(c.reltuples, 0)::bigint AS estimated_rows
FROM pg_catalog.pg_tables t
LEFT JOIN pg_catalog.pg_namespace n ON n.nspname = t.schemaname
LEFT JOIN pg_catalog.pg_class c ON c.relname = t.tablename AND c.relnamespace = n.oid
WHERE t.schemaname = current_schema()
ORDER BY t.tablename
"""

_COLUMNS_SQL = """
SELECT
  c.column_name AS name,
  c.data_type AS type,
  c.is_nullable = 'YES' AS nullable,
  c.column_default AS default_value,
  EXISTS (
    SELECT 1
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage ku
      ON ku.constraint_name = tc.constraint_name
     AND ku.table_schema = tc.table_schema
     AND ku.table_name = tc.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema = c.table_schema
      AND tc.table_name = c.table_name
      AND ku.column_name = c.column_name
  ) AS is_primary_key
FROM information_schema.columns c
WHERE c.table_schema = current_schema() AND c.table_name = %s
ORDER BY c.ordinal_position
"""

_FOREIGN_KEYS_SQL = """
SELECT
  a.attname AS column_name,
  rt.relname AS referenced_table,
  ra.attname AS referenced_column
FROM pg_catalog.pg_constraint con
JOIN pg_catalog.pg_class t ON t.oid = con.conrelid
JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
JOIN pg_catalog.pg_class rt ON rt.oid = con.confrelid
CROSS JOIN LATERAL unnest(con.conkey, con.confkey) WITH ORDINALITY AS k(attnum, refattnum, ord)
JOIN pg_catalog.pg_attribute a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
JOIN pg_catalog.pg_attribute ra ON ra.attrelid = con.confrelid AND ra.attnum = k.refattnum
WHERE con.contype = 'f' AND n.nspname = current_schema() AND t.relname = %s
ORDER BY con.conname, k.ord
"""

_INDEXES_SQL = """
SELECT
  i.relname AS name,
  ix.indisunique AS is_unique,
  ix.indisprimary AS is_primary,
  am.amname AS index_type,
  pg_get_expr(ix.indpred, ix.indrelid) AS predicate,
  array_agg(
    COALESCE(a.attname::text, pg_get_indexdef(ix.indexrelid, k.ord::int, true))
    ORDER BY k.ord
  ) AS columns
FROM pg_catalog.pg_index ix
JOIN pg_catalog.pg_class t ON t.oid = ix.indrelid
JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
JOIN pg_catalog.pg_class i ON i.oid = ix.indexrelid
JOIN pg_catalog.pg_am am ON am.oid = i.relam
CROSS JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord)
LEFT JOIN pg_catalog.pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum AND k.attnum <> 0
WHERE n.nspname = current_schema() AND t.relname = %s
GROUP BY i.relname, ix.indisunique, ix.indisprimary, am.amname, ix.indpred, ix.indrelid
ORDER BY i.relname
"""


class PostgresDialect(Dialect):
    name = "postgres"
    display_name = "PostgreSQL"
    read_only_statement = "SET default_transaction_read_only = ON"
    query_hint = "PostgreSQL: use CURRENT_DATE - INTERVAL, COALESCE, double-quoted identifiers"

    def build_url(self, connection_string: str) -> URL:
        return make_url(connection_string).set(drivername="postgresql+psycopg")

    def list_tables(self, execute: Executor) -> list[TableSummary]:
        rows = execute(_LIST_TABLES_SQL)
        return [
            TableSummary(
                name=as_text(row_value(row, "name")) or "",
                estimated_row_count=as_count(row_value(row, "estimated_rows")),
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
                    name=as_text(row_value(row, "name")) or "",
                    type=as_text(row_value(row, "type")) or "",
                    nullable=as_bool(row_value(row, "nullable")),
                    default_value=as_text(row_value(row, "default_value")),
                    is_primary_key=as_bool(row_value(row, "is_primary_key")),
                )
                for row in columns
            ],
            foreign_keys=[
                ForeignKey(
                    column=as_text(row_value(row, "column_name")) or "",
                    referenced_table=as_text(row_value(row, "referenced_table")) or "",
                    referenced_column=as_text(row_value(row, "referenced_column")) or "",
                )
                for row in foreign_keys
            ],
            indexes=[
                IndexInfo(
                    name=as_text(row_value(row, "name")) or "",
                    columns=split_columns(row_value(row, "columns")),
                    unique=as_bool(row_value(row, "is_unique")),
                    type=as_text(row_value(row, "index_type")),
                    is_primary=as_bool(row_value(row, "is_primary")),
                    partial_predicate=as_text(row_value(row, "predicate")),
                )
                for row in indexes
            ],
        )

    def explain(self, execute: Executor, sql: str, result: ExplainResult) -> None:
        rows = execute(f"EXPLAIN (FORMAT JSON) {sql}")
        row = first_row(rows)
        if row is None:
            return
        document = row_value(row, "QUERY PLAN")
        if isinstance(document, (str, bytes, bytearray)):
            try:
                document = json.loads(document)
            except ValueError as exc:
                raise PlanParseError(f"Plan is not valid JSON: {exc}") from exc
        if not isinstance(document, list) or not document or not isinstance(document[0], dict):
            raise PlanParseError("Expected a JSON array holding one plan entry")
        plan = document[0].get("Plan")
        if not isinstance(plan, dict):
            raise PlanParseError("Plan entry has no top-level 'Plan' node")
        _walk_plan(plan, result)


def _walk_plan(node: dict[str, Any], result: ExplainResult) -> None:
    relation = node.get("Relation Name")
    plan_rows = node.get("Plan Rows")
    if node.get("Node Type") == "Seq Scan" and relation:
        result.sequential_scans.append(relation)
        result.warnings.append(scan_warning(relation, as_count(plan_rows)))
    index_name = node.get("Index Name")
    if index_name:
        result.add_index(index_name)
    if plan_rows is not None:
        result.observe_rows(as_count(plan_rows))
    children = node.get("Plans") or []
    if not isinstance(children, list):
        raise PlanParseError(f"'Plans' of a {node.get('Node Type')} node is not a list")
    for child in children:
        if not isinstance(child, dict):
            raise PlanParseError("Child plan node is not an object")
        _walk_plan(child, result)
