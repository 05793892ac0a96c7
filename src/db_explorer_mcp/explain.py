"""Reduce backend execution plans to one :class:`ExplainResult` shape.

The dialect strategy reads its native plan (typed JSON tree, ad hoc JSON or
text lines) into the result; this module adds the checks and summary that are
the same for every backend.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .db.models import ExplainResult
from .dialects.base import format_row_count
from .errors import PlanParseError
from .guardrails import ensure_read_query
from .logging_utils import log_extra

if TYPE_CHECKING:
    from .db.connection import ConnectionManager

NO_INDEXES_WARNING = "No indexes used; check describe_table for available indexes"
NO_DETAILS_SUMMARY = "No plan details available"

_log = logging.getLogger(__name__)


def explain_query(manager: ConnectionManager, sql: str) -> ExplainResult:
    ensure_read_query(sql)
    dialect = manager.dialect
    result = ExplainResult()
    try:
        dialect.explain(manager.execute, sql, result)
    except PlanParseError as exc:
        _log.warning(
            "Plan could not be fully parsed",
            extra=log_extra(dialect=dialect.name, error_message=str(exc)),
        )
        result.warnings.append(f"Plan could not be fully parsed ({exc}); results may be partial")

    if result.sequential_scans and not result.indexes_used:
        result.warnings.append(NO_INDEXES_WARNING)
    result.summary = summarize(result)
    return result


def summarize(result: ExplainResult) -> str:
    parts = []
    if result.estimated_rows is not None:
        parts.append(f"{format_row_count(result.estimated_rows)} rows estimated")
    if result.indexes_used:
        parts.append(f"uses {len(result.indexes_used)} index(es)")
    if result.sequential_scans:
        parts.append(f"{len(result.sequential_scans)} sequential scan(s)")
    return ", ".join(parts) if parts else NO_DETAILS_SUMMARY


def format_explain_result(result: ExplainResult) -> str:
    lines = ["Query Plan Analysis"]
    if result.estimated_rows is not None:
        lines.append(f"  Estimated rows: {format_row_count(result.estimated_rows)}")
    lines.append(
        f"  Indexes used: {', '.join(result.indexes_used) if result.indexes_used else '(none)'}"
    )
    lines.append(
        "  Sequential scans: "
        f"{', '.join(result.sequential_scans) if result.sequential_scans else 'none'}"
    )
    if result.warnings:
        lines.append("")
        lines.append("  Warnings:")
        lines.extend(f"    - {warning}" for warning in result.warnings)
    return "\n".join(lines)
