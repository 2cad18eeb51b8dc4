"""Pydantic models for metric declarations.

this is the yaml-facing shape of a metric. it does no checking
against the fact - the aggregate, dimensions and filters are validated when
the registry binds it into a runtime Metric, so the errors are the same
whether a metric came from yaml or was built in python.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AggregateKind(str, Enum):
    """Aggregate functions a metric can use."""

    COUNT = "count"
    SUM = "sum"
    MAX = "max"
    MIN = "min"
    AVG = "avg"


class MetricFilterOperator(str, Enum):
    """Operators for having-clause thresholds on the aggregate."""

    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# "kind" or {"released_on": "quarter"} / {"series": "title"}
DimensionRef = str | dict[str, str]


class MetricDefinition(BaseModel):
    """A named, reusable report definition over one fact."""

    name: str
    fact: str
    description: str | None = None
    # left as a plain value so an unknown aggregate raises UnknownAggregate
    # instead of a pydantic ValidationError
    aggregate: str | dict[str, str] = "count"
    aggregate_expression: str | None = None
    dimensions: list[DimensionRef] = Field(default_factory=list)
    dimension_filter: dict[str, Any] = Field(default_factory=dict)
    metric_filter: dict[str, Any] = Field(default_factory=dict)
    order_by_dimension: dict[str, SortDirection] = Field(default_factory=dict)
