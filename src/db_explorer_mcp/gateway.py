"""Read-only query execution with bounded results."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Sequence

from .db.models import ChartConfig, QueryResult
from .errors import QueryError, ValidationError
from .guardrails import detect_statement_type, ensure_read_query, truncate_rows
from .logging_utils import log_extra

if TYPE_CHECKING:
    from .db.connection import ConnectionManager

MAX_QUERY_ROWS = 1000
CHART_TYPES = ("area", "bar", "line", "pie")

_log = logging.getLogger(__name__)


def _execute_read(manager: ConnectionManager, sql: str) -> list[dict[str, Any]]:
    ensure_read_query(sql)
    dialect = manager.dialect
    try:
        rows = manager.execute(sql)
    except QueryError as exc:
        raise QueryError(f"{exc} ({dialect.query_hint})") from exc
    _log.info(
        "Read query executed",
        extra=log_extra(
            dialect=dialect.name,
            statement_type=detect_statement_type(sql),
            row_count=len(rows),
        ),
    )
    return rows


def run_query(manager: ConnectionManager, sql: str, max_rows: int = MAX_QUERY_ROWS) -> QueryResult:
    """
    Execute a SELECT or WITH statement and cap the returned rows.

    Parameters:
    manager (ConnectionManager): The live connection
    sql (str): Statement to run
    max_rows (int): Most rows returned; the true total is still reported

    Returns:
    QueryResult: Rows, total row count and truncation flag

    Raises:
    ValidationError: If the statement is not a read query
    QueryError: If the backend rejects the statement
    """
    rows = _execute_read(manager, sql)
    data, truncated = truncate_rows(rows, max_rows)
    return QueryResult(rows=data, total_rows=len(rows), truncated=truncated, max_rows=max_rows)


def format_query_result(result: QueryResult) -> str:
    text = json.dumps(result.rows, indent=2, default=str)
    if result.truncated:
        return (
            f"{text}\n\n(Showing {result.max_rows} of {result.total_rows} rows. "
            "Add a LIMIT clause for smaller result sets.)"
        )
    return text


def build_chart_config(
    manager: ConnectionManager,
    sql: str,
    title: str,
    chart_type: str,
    x_axis: str | None = None,
    series: Sequence[str] | None = None,
    stacked: bool = False,
    description: str | None = None,
) -> ChartConfig:
    """Run ``sql`` and map its columns onto chart axes.

    The x axis defaults to the first column and the series to every other one.
    """
    if chart_type not in CHART_TYPES:
        raise ValidationError(
            f"Unsupported chart type '{chart_type}'. Must be one of: {', '.join(CHART_TYPES)}"
        )
    rows = _execute_read(manager, sql)
    if not rows:
        raise QueryError("Query returned no results")

    columns = list(rows[0].keys())
    x_axis_key = x_axis or columns[0]
    series_columns = list(series) if series else [c for c in columns if c != x_axis_key]
    if not series_columns:
        raise ValidationError("Chart needs at least one data series column besides the x axis")

    return ChartConfig(
        title=title,
        description=description,
        chart_type=chart_type,
        data=rows,
        data_key=series_columns[0],
        x_axis_key=x_axis_key,
        multi_series=series_columns if len(series_columns) > 1 else None,
        stacked=True if stacked else None,
    )
