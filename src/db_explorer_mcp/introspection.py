"""Catalog introspection and its text rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .db.models import TableDescription, TableSummary
from .errors import QueryError

if TYPE_CHECKING:
    from .db.connection import ConnectionManager

NO_TABLES_MESSAGE = "No tables found in the database."
DEFAULT_MAX_SCHEMA_TABLES = 100


def list_tables(manager: ConnectionManager) -> list[TableSummary]:
    """Tables in the current schema, ordered by name."""
    tables = manager.dialect.list_tables(manager.execute)
    return sorted(tables, key=lambda table: table.name)


def describe_table(manager: ConnectionManager, table: str) -> TableDescription:
    description = manager.dialect.describe_table(manager.execute, table)
    if not description.columns:
        raise QueryError(f"Table '{table}' not found")
    return description


def format_table_list(tables: list[TableSummary]) -> str:
    if not tables:
        return NO_TABLES_MESSAGE

    width = max(max(len(t.name) for t in tables), len("Table"))
    lines = [
        f"{'Table'.ljust(width)}  Est. Rows",
        f"{'─' * width}  {'─' * 10}",
    ]
    lines.extend(f"{t.name.ljust(width)}  {t.estimated_row_count:,}" for t in tables)
    return "\n".join(lines)


def format_table_description(description: TableDescription) -> str:
    lines = [f"Table: {description.name}", "", "Columns:"]

    name_width = max([len(c.name) for c in description.columns] + [4])
    type_width = max([len(c.type) for c in description.columns] + [4])
    for column in description.columns:
        flags = []
        if column.is_primary_key:
            flags.append("PK")
        if not column.nullable:
            flags.append("NOT NULL")
        if column.default_value:
            flags.append(f"DEFAULT {column.default_value}")
        flag_text = f"  [{', '.join(flags)}]" if flags else ""
        lines.append(
            f"  {column.name.ljust(name_width)}  {column.type.ljust(type_width)}{flag_text}".rstrip()
        )

    if description.foreign_keys:
        lines.append("")
        lines.append("Foreign Keys:")
        for fk in description.foreign_keys:
            lines.append(f"  {fk.column} → {fk.referenced_table}.{fk.referenced_column}")

    if description.indexes:
        lines.append("")
        lines.append("Indexes:")
        for index in description.indexes:
            details = []
            if index.is_primary:
                details.append("PRIMARY")
            elif index.unique:
                details.append("UNIQUE")
            if index.type:
                details.append(index.type)
            if index.cardinality is not None:
                details.append(f"cardinality {index.cardinality:,}")
            suffix = f" ({', '.join(details)})" if details else ""
            predicate = f" WHERE {index.partial_predicate}" if index.partial_predicate else ""
            lines.append(f"  {index.name}: ({', '.join(index.columns)}){suffix}{predicate}")

    return "\n".join(lines)


def get_full_schema(
    manager: ConnectionManager, max_tables: int = DEFAULT_MAX_SCHEMA_TABLES
) -> str:
    """Every table description in one document, capped at ``max_tables``.

    Tables past the cap are left out; the header counts only the tables
    that are included.
    """
    tables = list_tables(manager)
    if not tables:
        return NO_TABLES_MESSAGE

    tables = tables[:max_tables]
    sections = [f"Database Schema ({len(tables)} tables)\n{'═' * 40}\n"]
    for table in tables:
        description = manager.dialect.describe_table(manager.execute, table.name)
        sections.append(format_table_description(description))
        sections.append(f"  Estimated rows: {table.estimated_row_count:,}")
        sections.append("")
    return "\n".join(sections)
