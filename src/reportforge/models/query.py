"""Pydantic models for report requests and results.

a report request only carries the per-invocation overrides. the metric it
names holds the defaults, the Report merges the two.
"""

from typing import Any

from pydantic import BaseModel, Field

from reportforge.models.metric import DimensionRef, SortDirection


class ReportQuery(BaseModel):
    """A request to run a metric with extra dimensions and filters.

    mirrors how people ask for reports: "figures count by kind, only
    active ones, biggest groups first".
    """

    metric: str
    dimensions: list[DimensionRef] = Field(default_factory=list)
    dimension_filter: dict[str, Any] = Field(default_factory=dict)
    metric_filter: dict[str, Any] = Field(default_factory=dict)
    order_by_dimension: dict[str, SortDirection] = Field(default_factory=dict)
    dimension_identifiers: bool | None = None  # None means use the config


class QueryResult(BaseModel):
    """Result of an executed statement.

    the sql travels with the data so it's always possible to see exactly
    what ran.
    """

    sql: str
    columns: list[str]
    data: list[dict]
    row_count: int
    execution_time_ms: float
