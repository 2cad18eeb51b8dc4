"""Main ReportStore interface for ReportForge."""

from pathlib import Path
from typing import Any

from reportforge.compiler.report import Report
from reportforge.executor.base import Backend
from reportforge.executor.duckdb_executor import DuckDBBackend
from reportforge.models.config import ReportingConfig
from reportforge.models.metric import DimensionRef
from reportforge.models.query import QueryResult, ReportQuery
from reportforge.parser.loader import RegistryBuilder, SchemaRegistry


class ReportStore:
    """Main interface for ReportForge: a registry plus the backend it runs on."""

    def __init__(
        self,
        models_path: str | Path | None = None,
        database_path: str | None = None,
        *,
        config: ReportingConfig | None = None,
        backend: Backend | None = None,
        registry: SchemaRegistry | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            models_path: Directory containing fact/metric YAML files.
            database_path: Path to DuckDB file, or None for in-memory.
            config: Shared settings, defaults if omitted.
            backend: Backend to run on instead of a DuckDB one.
            registry: Prebuilt registry, e.g. with python-declared filters.
                models_path is ignored when this is given.
        """
        self.config = config or (registry.config if registry else ReportingConfig())
        self.backend = backend or DuckDBBackend(database_path or self.config.database)

        if registry is None:
            if models_path is None:
                raise ValueError("Either models_path or registry is required")
            # load and validate everything upfront - fail fast on bad declarations
            builder = RegistryBuilder(self.config, dialect=self.backend.dialect_name)
            registry = builder.load_directory(models_path).build()
        self.registry = registry

    def report(self, metric: str, **overrides: Any) -> Report:
        """Build a Report for a declared metric, see Report for the overrides."""
        return Report(metric, self.backend, registry=self.registry, **overrides)

    def query(
        self,
        metric: str,
        dimensions: list[DimensionRef] | None = None,
        dimension_filter: dict[str, Any] | None = None,
        metric_filter: dict[str, Any] | None = None,
        order_by_dimension: dict[str, str] | None = None,
        dimension_identifiers: bool | None = None,
    ) -> QueryResult:
        """Run a metric with optional extra dimensions and filters.

        Returns:
            QueryResult with the processed rows and the SQL that ran.
        """
        query = ReportQuery(
            metric=metric,
            dimensions=dimensions or [],
            dimension_filter=dimension_filter or {},
            metric_filter=metric_filter or {},
            order_by_dimension=order_by_dimension or {},
            dimension_identifiers=dimension_identifiers,
        )
        return self._report_for(query).result

    def get_sql(
        self,
        metric: str,
        dimensions: list[DimensionRef] | None = None,
        dimension_filter: dict[str, Any] | None = None,
        metric_filter: dict[str, Any] | None = None,
        order_by_dimension: dict[str, str] | None = None,
        dimension_identifiers: bool | None = None,
    ) -> str:
        """Get the SQL without executing it."""
        query = ReportQuery(
            metric=metric,
            dimensions=dimensions or [],
            dimension_filter=dimension_filter or {},
            metric_filter=metric_filter or {},
            order_by_dimension=order_by_dimension or {},
            dimension_identifiers=dimension_identifiers,
        )
        return self._report_for(query).compile()

    def _report_for(self, query: ReportQuery) -> Report:
        return self.report(
            query.metric,
            dimensions=query.dimensions,
            dimension_filter=query.dimension_filter,
            metric_filter=query.metric_filter,
            order_by_dimension=query.order_by_dimension,
            dimension_identifiers=query.dimension_identifiers,
        )

    def list_facts(self) -> list[dict]:
        return [
            {
                "name": fact.name,
                "table": fact.get_table_name(),
                "measure": fact.measure,
                "description": fact.description,
            }
            for fact in self.registry.facts.values()
        ]

    def list_metrics(self) -> list[dict]:
        return [
            {
                "name": metric.name,
                "fact": metric.fact.name,
                "aggregate": metric.aggregate.value,
                "description": metric.description,
            }
            for metric in self.registry.metrics.values()
        ]

    def list_dimensions(self) -> list[dict]:
        """List all declared dimensions across all facts."""
        dims = []
        for fact in self.registry.facts.values():
            for dim in fact.dimensions:
                dims.append(
                    {
                        "name": dim.name,
                        "type": dim.type.value,
                        "fact": fact.name,
                        "description": dim.description,
                    }
                )
        return dims

    def list_filters(self) -> list[dict]:
        """List all declared dimension filters across all facts."""
        filters = []
        for fact in self.registry.facts.values():
            for dimension_filter in fact.dimension_filters:
                filters.append(
                    {
                        "name": dimension_filter.name,
                        "kind": dimension_filter.kind.value,
                        "fact": fact.name,
                    }
                )
        return filters

    def validate(self) -> list[str]:
        """Compile every metric. Returns list of errors."""
        errors = []

        for metric in self.registry.metrics.values():
            try:
                Report(metric, self.backend).compile()
            except Exception as e:
                errors.append(f"Metric '{metric.name}': {e}")

        return errors

    def close(self) -> None:
        """Close database connection."""
        self.backend.close()

    def __enter__(self) -> "ReportStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
