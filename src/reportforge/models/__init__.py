"""Pydantic models for ReportForge."""

from reportforge.models.config import ReportingConfig, load_config
from reportforge.models.fact import (
    Dimension,
    DimensionType,
    Fact,
    FilterDeclaration,
    FilterKind,
    Relation,
    RelationKind,
    TimePrecision,
)
from reportforge.models.metric import (
    AggregateKind,
    MetricDefinition,
    MetricFilterOperator,
    SortDirection,
)
from reportforge.models.query import QueryResult, ReportQuery

__all__ = [
    "AggregateKind",
    "Dimension",
    "DimensionType",
    "Fact",
    "FilterDeclaration",
    "FilterKind",
    "MetricDefinition",
    "MetricFilterOperator",
    "QueryResult",
    "Relation",
    "RelationKind",
    "ReportQuery",
    "ReportingConfig",
    "SortDirection",
    "TimePrecision",
    "load_config",
]
