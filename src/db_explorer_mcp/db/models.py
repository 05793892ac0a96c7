"""Normalized shapes shared by every dialect.

All of these are transient results, rebuilt on every call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from ..dialects.base import Dialect


@dataclass
class ConnectionState:
    dialect: Dialect
    engine: Engine
    url: str
    read_only: bool = True


@dataclass
class TableSummary:
    name: str
    estimated_row_count: int = 0


@dataclass
class ColumnInfo:
    name: str
    type: str
    nullable: bool
    default_value: str | None = None
    is_primary_key: bool = False


@dataclass
class ForeignKey:
    column: str
    referenced_table: str
    referenced_column: str


@dataclass
class IndexInfo:
    name: str
    columns: list[str]
    unique: bool
    type: str | None = None
    is_primary: bool = False
    cardinality: int | None = None
    partial_predicate: str | None = None


@dataclass
class TableDescription:
    name: str
    columns: list[ColumnInfo] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    indexes: list[IndexInfo] = field(default_factory=list)


@dataclass
class ExplainResult:
    summary: str = ""
    indexes_used: list[str] = field(default_factory=list)
    sequential_scans: list[str] = field(default_factory=list)
    estimated_rows: int | None = None
    warnings: list[str] = field(default_factory=list)

    def add_index(self, name: str) -> None:
        if name not in self.indexes_used:
            self.indexes_used.append(name)

    def observe_rows(self, rows: int) -> None:
        if self.estimated_rows is None or rows > self.estimated_rows:
            self.estimated_rows = rows


@dataclass
class QueryResult:
    rows: list[dict[str, Any]]
    total_rows: int
    truncated: bool
    max_rows: int


@dataclass
class ChartConfig:
    title: str
    chart_type: str
    data: list[dict[str, Any]]
    data_key: str
    x_axis_key: str
    description: str | None = None
    multi_series: list[str] | None = None
    stacked: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        """Camel-cased keys, optional fields omitted, as the chart front end expects."""
        payload: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "chartType": self.chart_type,
            "data": self.data,
            "xAxisKey": self.x_axis_key,
            "dataKey": self.data_key,
            "multiSeries": self.multi_series,
            "stacked": self.stacked,
        }
        return {k: v for k, v in payload.items() if v is not None}
