"""Runtime metric: a named aggregate bound to a fact.

everything a metric refers to is checked here, when it's built, so a bad
aggregate or filter name blows up at startup rather than on the first run.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from reportforge.compiler.dimension import ReportingDimension, build_from_dimensions
from reportforge.errors import UnknownAggregate, UnsupportedAggregateExpression
from reportforge.models.fact import Fact, validate_identifier
from reportforge.models.metric import (
    AggregateKind,
    DimensionRef,
    MetricDefinition,
    MetricFilterOperator,
    SortDirection,
)

if TYPE_CHECKING:
    from reportforge.compiler.report import Report
    from reportforge.executor.base import Backend
    from reportforge.parser.loader import SchemaRegistry

# aggregates that accept an aggregate expression. count gates which rows are
# counted, sum adds up the expression per distinct row
EXPRESSION_AGGREGATES = (AggregateKind.COUNT, AggregateKind.SUM)


def normalize_metric_filter(metric_filter: Mapping[str, Any] | None) -> dict[MetricFilterOperator, Decimal]:
    """Check operators and turn thresholds into decimals.

    Raises:
        ValueError: unknown operator or a threshold that isn't a finite number.
    """
    normalized: dict[MetricFilterOperator, Decimal] = {}
    for operator, value in (metric_filter or {}).items():
        try:
            op = MetricFilterOperator(operator)
        except ValueError:
            raise ValueError(
                f"Unknown metric filter operator '{operator}', use one of: "
                f"{', '.join(o.value for o in MetricFilterOperator)}"
            ) from None
        try:
            normalized[op] = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Metric filter '{operator}' needs a number, got {value!r}") from None
        if not normalized[op].is_finite():
            raise ValueError(f"Metric filter '{operator}' needs a finite number, got {value!r}")
    return normalized


def _sort_direction(direction: Any) -> SortDirection:
    if isinstance(direction, SortDirection):
        return direction
    try:
        return SortDirection(str(direction).lower())
    except ValueError:
        raise ValueError(f"Sort direction must be asc or desc, got {direction!r}") from None


def normalize_ordering(ordering: Mapping[str, Any] | None) -> dict[str, SortDirection]:
    return {str(name): _sort_direction(direction) for name, direction in (ordering or {}).items()}


class Metric:
    """A named, reusable {aggregate, dimensions, filters, ordering} over a fact."""

    def __init__(
        self,
        name: str,
        *,
        fact: Fact | str,
        registry: SchemaRegistry,
        aggregate: str | AggregateKind | Mapping[str, str] = AggregateKind.COUNT,
        aggregate_expression: str | None = None,
        dimensions: Iterable[DimensionRef] = (),
        dimension_filter: Mapping[str, Any] | None = None,
        metric_filter: Mapping[str, Any] | None = None,
        order_by_dimension: Mapping[str, Any] | None = None,
        description: str | None = None,
    ) -> None:
        self.name = validate_identifier(str(name), "metric name")
        self.registry = registry
        self.fact = registry.get_fact(fact) if isinstance(fact, str) else fact
        self.description = description

        self.aggregate, self.aggregate_expression_name = self._validate_aggregate(
            aggregate, aggregate_expression
        )
        self.dimensions: list[ReportingDimension] = build_from_dimensions(
            self.fact, dimensions, registry, registry.dialect
        )
        self.dimension_filter = dict(dimension_filter or {})
        self.metric_filter = normalize_metric_filter(metric_filter)
        self.order_by_dimension = normalize_ordering(order_by_dimension)
        self._check_dimension_filter()

    @classmethod
    def from_definition(cls, definition: MetricDefinition, registry: SchemaRegistry) -> Metric:
        return cls(
            definition.name,
            fact=definition.fact,
            registry=registry,
            aggregate=definition.aggregate,
            aggregate_expression=definition.aggregate_expression,
            dimensions=definition.dimensions,
            dimension_filter=definition.dimension_filter,
            metric_filter=definition.metric_filter,
            order_by_dimension=definition.order_by_dimension,
            description=definition.description,
        )

    def __repr__(self) -> str:
        return f"Metric({self.name}, fact={self.fact.name}, aggregate={self.aggregate.value})"

    @property
    def aggregate_expression(self) -> str | None:
        """SQL of the aggregate expression, None when the metric has none."""
        if self.aggregate_expression_name is None:
            return None
        return self.fact.aggregate_expressions[self.aggregate_expression_name]

    def report(self, backend: Backend, **overrides: Any) -> Report:
        """Build a Report for this metric, see Report for the overrides."""
        from reportforge.compiler.report import Report

        return Report(self, backend, **overrides)

    def _validate_aggregate(
        self, aggregate: str | AggregateKind | Mapping[str, str], expression: str | None
    ) -> tuple[AggregateKind, str | None]:
        # {"count": "kind_is_card"} is shorthand for aggregate + expression
        if isinstance(aggregate, Mapping):
            if len(aggregate) != 1:
                raise UnknownAggregate(f"Aggregate mapping needs exactly one entry, got {dict(aggregate)}")
            ((aggregate, expression),) = aggregate.items()

        try:
            kind = AggregateKind(aggregate)
        except ValueError:
            raise UnknownAggregate(f"Unknown aggregate '{aggregate}'") from None

        if expression is not None:
            if kind not in EXPRESSION_AGGREGATES:
                raise UnsupportedAggregateExpression(
                    f"Currently no aggregate expression support for '{kind.value}'"
                )
            if expression not in self.fact.aggregate_expressions:
                raise UnsupportedAggregateExpression(
                    f"Aggregate expression '{expression}' not defined in '{self.fact.name}'"
                )
        return kind, expression

    def _check_dimension_filter(self) -> None:
        for name in self.dimension_filter:
            self.registry.find_dimension_filter(self.fact, name)
