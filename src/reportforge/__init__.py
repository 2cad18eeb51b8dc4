"""ReportForge - compile star-schema report definitions to SQL."""

from reportforge.compiler.metric import Metric
from reportforge.compiler.report import Report
from reportforge.compiler.scope import QueryScope
from reportforge.errors import (
    AmbiguousDimension,
    InvalidDimensionLabel,
    ReportingError,
    SearchBackendUnavailable,
    UnknownAggregate,
    UnknownDimension,
    UnknownDimensionFilter,
    UnknownFact,
    UnknownMetric,
    UnsupportedAggregateExpression,
    UnsupportedPrecision,
)
from reportforge.executor.base import Backend
from reportforge.executor.duckdb_executor import DuckDBBackend
from reportforge.parser.loader import RegistryBuilder, SchemaRegistry
from reportforge.store import ReportStore

__version__ = "0.1.0"

__all__ = [
    "AmbiguousDimension",
    "Backend",
    "DuckDBBackend",
    "InvalidDimensionLabel",
    "Metric",
    "QueryScope",
    "RegistryBuilder",
    "Report",
    "ReportStore",
    "ReportingError",
    "SchemaRegistry",
    "SearchBackendUnavailable",
    "UnknownAggregate",
    "UnknownDimension",
    "UnknownDimensionFilter",
    "UnknownFact",
    "UnknownMetric",
    "UnsupportedAggregateExpression",
    "UnsupportedPrecision",
]
