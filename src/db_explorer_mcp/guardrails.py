from __future__ import annotations

from typing import Any, Sequence

from .errors import ValidationError

READ_STATEMENTS = ("SELECT", "WITH")


def detect_statement_type(sql: str) -> str:
    stripped = sql.strip().split()
    if not stripped:
        raise ValidationError("SQL statement is empty")
    return stripped[0].upper()


def ensure_read_query(sql: str) -> str:
    """Reject anything that does not start with SELECT or WITH.

    This is a prefix check only; the session is also put in read-only mode
    when the connection is opened.
    """
    normalized = sql.strip().upper()
    if not normalized.startswith(READ_STATEMENTS):
        raise ValidationError("Only SELECT and WITH (CTE) queries are allowed")
    return sql


def quote_identifier(identifier: str, quote: str = '"') -> str:
    escaped = identifier.replace(quote, quote * 2)
    return f"{quote}{escaped}{quote}"


def truncate_rows(rows: Sequence[Any], cap: int) -> tuple[list[Any], bool]:
    if len(rows) > cap:
        return list(rows[:cap]), True
    return list(rows), False
