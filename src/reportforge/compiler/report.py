"""Report: compiles a metric plus overrides into one statement and runs it.

the flow:
  1. merge the metric's dimensions/filters/ordering with the overrides
  2. split the dimension filters by kind
  3. build the scope - fact table, joins for relation dimensions, then
     scope filters, custom filters, search terms in that order
  4. render either a plain grouped statement or, for sum and avg, the
     distinct-rows subquery wrapped in the outer aggregate
  5. execute once, memoize, rewrite dimension values with label callbacks

sum, avg and fan-out: joining a has_many relation repeats every fact row
once per related row, and a plain SUM or AVG takes the repeats into
account. count is safe because it counts distinct primary keys, max and min
don't care about repeats. for sum and avg the inner query picks each
(fact row, dimension values) combination once and the outer query
aggregates those.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from reportforge.compiler.dimension import (
    DERIVED_TABLE,
    ReportingDimension,
    build_from_dimensions,
    merge_dimensions,
)
from reportforge.compiler.dimension_filter import PartitionedFilters
from reportforge.compiler.function_adapters import count_distinct_sql, function_adapter_for
from reportforge.compiler.metric import Metric, normalize_metric_filter, normalize_ordering
from reportforge.compiler.scope import QueryScope
from reportforge.compiler.sql_builder import SelectStatement, format_sql
from reportforge.errors import UnknownMetric
from reportforge.models.metric import AggregateKind, DimensionRef, MetricFilterOperator
from reportforge.models.query import QueryResult

if TYPE_CHECKING:
    from reportforge.executor.base import Backend
    from reportforge.parser.loader import SchemaRegistry

logger = logging.getLogger(__name__)

AGGREGATE_FUNCTION_OPERATORS = {
    MetricFilterOperator.EQ: "=",
    MetricFilterOperator.GT: ">",
    MetricFilterOperator.GTE: ">=",
    MetricFilterOperator.LT: "<",
    MetricFilterOperator.LTE: "<=",
}

# column names inside the derived table of the distinct-rows rewrite
ROW_ID_COLUMN = "_row_id"
MEASURE_COLUMN = "_measure"

# aggregates a has_many join would skew, rendered over distinct fact rows
DISTINCT_ROW_AGGREGATES = (AggregateKind.SUM, AggregateKind.AVG)


class Report:
    """A metric with per-run overrides, compiled and executed once.

    not meant to be reused with different overrides - build a new Report
    for that. calling run() again returns the same rows without touching
    the database.

    Args:
        metric: a Metric, or a metric name looked up in `registry`.
        backend: where the statement runs; its dialect picks the functions.
        registry: needed when `metric` is a name.
        dimension_identifiers: also select ids of related-fact dimensions.
            defaults to the config setting.
        dimension_filter: filter values, these win over the metric's.
        dimensions: extra dimensions, appended after the metric's.
        metric_filter: having thresholds (operator -> value), these win
            over the metric's.
        order_by_dimension: dimension -> asc/desc, merged over the metric's.
    """

    def __init__(
        self,
        metric: Metric | str,
        backend: Backend,
        *,
        registry: SchemaRegistry | None = None,
        dimension_identifiers: bool | None = None,
        dimension_filter: Mapping[str, Any] | None = None,
        dimensions: Iterable[DimensionRef] = (),
        metric_filter: Mapping[str, Any] | None = None,
        order_by_dimension: Mapping[str, Any] | None = None,
    ) -> None:
        if isinstance(metric, str):
            if registry is None:
                raise UnknownMetric(f"Unknown metric {metric}")
            metric = registry.get_metric(metric)
        if not isinstance(metric, Metric):
            raise UnknownMetric(f"Unknown metric {metric!r}")

        self.metric = metric
        self.registry = metric.registry
        self.backend = backend
        if backend.dialect_name != self.registry.dialect:
            raise ValueError(
                f"Registry was built for {self.registry.dialect} but the backend speaks "
                f"{backend.dialect_name}"
            )

        if dimension_identifiers is None:
            dimension_identifiers = self.registry.config.dimension_identifiers
        self.dimension_identifiers = dimension_identifiers

        local_dimensions = build_from_dimensions(
            self.fact, dimensions, self.registry, self.registry.dialect
        )
        self.dimensions: list[ReportingDimension] = merge_dimensions(
            metric.dimensions, local_dimensions
        )
        self.metric_filter = {**metric.metric_filter, **normalize_metric_filter(metric_filter)}
        self.ordering = {**metric.order_by_dimension, **normalize_ordering(order_by_dimension)}
        self.dimension_filters = self._partition_dimension_filters(
            {**metric.dimension_filter, **(dimension_filter or {})}
        )

        self._sql: str | None = None
        self._result: QueryResult | None = None
        self._data: list[dict] | None = None

    @property
    def fact(self):
        return self.metric.fact

    # --- public api ---

    def run(self) -> list[dict]:
        """Build and execute the statement, returning the processed rows.

        memoized: later calls return the same list without executing again.
        """
        if self._data is None:
            self._data = self._build_data()
        return self._data

    @property
    def result(self) -> QueryResult:
        """The executed QueryResult (runs the report if it hasn't yet)."""
        self.run()
        return self._result

    def compile(self) -> str:
        """The SQL this report executes, without executing it."""
        if self._sql is None:
            if self.metric.aggregate in DISTINCT_ROW_AGGREGATES:
                statement = self._distinct_rows_statement()
            else:
                statement = self._grouped_statement()
            self._sql = format_sql(
                statement, self.backend.sqlglot_dialect, self.registry.config.pretty_sql
            )
        return self._sql

    @property
    def sql(self) -> str:
        return self.compile()

    # --- execution ---

    def _build_data(self) -> list[dict]:
        sql = self.compile()
        logger.debug("Running report %s:\n%s", self.metric.name, sql)
        self._result = self.backend.execute(sql)
        data = self._result.data
        self._apply_dimension_callbacks(data)
        return data

    def _apply_dimension_callbacks(self, data: list[dict]) -> None:
        for dimension in self.dimensions:
            callback = dimension.label_callback
            if callback is None:
                continue
            for row in data:
                row[dimension.name] = callback(row.get(dimension.name))

    # --- compilation ---

    def _partition_dimension_filters(self, dimension_filter: Mapping[str, Any]) -> PartitionedFilters:
        partitioned = PartitionedFilters()
        for name, value in dimension_filter.items():
            partitioned.add(self.registry.find_dimension_filter(self.fact, str(name)), value)
        return partitioned

    def _scope(self) -> QueryScope:
        scope = QueryScope(self.fact, self.registry, dialect=self.backend.sqlglot_dialect)
        for dimension in self.dimensions:
            if dimension.join_name is not None:
                scope = scope.join_relation(dimension.join_name)

        return self.dimension_filters.apply(
            scope, self.registry.named_predicates, self.registry.search_evaluator
        )

    def _select_aggregate(self) -> str:
        expression = self.metric.aggregate_expression
        if self.metric.aggregate == AggregateKind.COUNT:
            adapter = function_adapter_for(self.backend.dialect_name)
            if adapter is None:
                return count_distinct_sql(self.fact.primary_key_column, expression)
            return adapter.count_distinct(self.fact.primary_key_column, expression)

        function = self.metric.aggregate.value.upper()
        return f"{function}({expression or self.fact.qualify(self.fact.measure)})"

    def _having(self, aggregate: str) -> list[str]:
        return [
            f"{aggregate} {AGGREGATE_FUNCTION_OPERATORS[operator]} {value}"
            for operator, value in self.metric_filter.items()
        ]

    def _ordered_dimensions(self) -> list[tuple[ReportingDimension, Any]]:
        """Ordering entries that refer to a selected dimension, others are skipped."""
        by_name = {d.name: d for d in self.dimensions}
        ordered = []
        for name, direction in self.ordering.items():
            dimension = by_name.get(name)
            if dimension is None:
                logger.debug("Not ordering by '%s', it isn't a dimension of this report", name)
                continue
            ordered.append((dimension, direction))
        return ordered

    def _grouped_statement(self) -> str:
        scope = self._scope()
        aggregate = self._select_aggregate()
        ids = self.dimension_identifiers

        statement = SelectStatement(
            select=[f"{aggregate} AS {self.metric.name}"]
            + [expr for d in self.dimensions for expr in d.select_statement(ids)],
            from_clause=scope.from_clause(),
            where=scope.where_clause(),
            group_by=[expr for d in self.dimensions for expr in d.group_by_statement(ids)],
            having=self._having(aggregate),
            order_by=[d.order_by_statement(direction) for d, direction in self._ordered_dimensions()],
        )
        return statement.render()

    def _distinct_rows_statement(self) -> str:
        scope = self._scope()
        ids = self.dimension_identifiers
        measure = self.metric.aggregate_expression or self.fact.qualify(self.fact.measure)

        # one row per distinct (fact row, dimension values), joins and filters as usual
        inner = SelectStatement(
            select=[
                f"{self.fact.primary_key_column} AS {ROW_ID_COLUMN}",
                f"{measure} AS {MEASURE_COLUMN}",
            ]
            + [expr for d in self.dimensions for expr in d.select_statement_always_rename(ids)],
            from_clause=scope.from_clause(),
            distinct=True,
            where=scope.where_clause(),
        )

        function = self.metric.aggregate.value.upper()
        aggregate = f"{function}({DERIVED_TABLE}.{MEASURE_COLUMN})"
        derived_columns = [expr for d in self.dimensions for expr in d.select_statement_no_rename(ids)]
        outer = SelectStatement(
            select=[f"{aggregate} AS {self.metric.name}"] + derived_columns,
            from_clause=inner.as_subquery(DERIVED_TABLE),
            group_by=derived_columns,
            having=self._having(aggregate),
            order_by=[
                d.outer_order_by_statement(direction) for d, direction in self._ordered_dimensions()
            ],
        )
        return outer.render()
