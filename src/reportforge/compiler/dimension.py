"""Dimensions as used by a metric or report.

a fact declares which dimensions exist; a metric or report asks for one,
optionally with a label: {"released_on": "quarter"} truncates a time column,
{"series": "title"} picks which column of a related fact to show. this module
turns that request into the sql for select / group by / order by and keeps
the callback that rewrites the values afterwards.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from reportforge.compiler.function_adapters import function_adapter_for
from reportforge.errors import AmbiguousDimension, InvalidDimensionLabel, UnknownDimension
from reportforge.models.fact import Dimension, DimensionType, Fact, TimePrecision
from reportforge.models.metric import DimensionRef, SortDirection

if TYPE_CHECKING:
    from reportforge.parser.loader import SchemaRegistry

DERIVED_TABLE = "T"


class DimensionKind(str, Enum):
    STANDARD = "standard"  # column on the fact or on a joined fact
    DATETIME = "datetime"  # truncated time column


def quarter_label(value: Any) -> str | None:
    """Map a truncated timestamp to "Q1".."Q4"."""
    if value is None:
        return None
    month = getattr(value, "month", None)
    if month is None:
        month = datetime.fromisoformat(str(value).strip()).month
    return f"Q{(month - 1) // 3 + 1}"


# callbacks used when a time dimension doesn't declare its own
DEFAULT_LABEL_CALLBACKS: dict[TimePrecision, Callable[[Any], Any]] = {
    TimePrecision.QUARTER: quarter_label,
}


class ReportingDimension:
    """One group-by axis of a report.

    two of these are the same dimension when name, source and label all
    match. same name with anything else different is ambiguous.
    """

    def __init__(
        self,
        fact: Fact,
        dimension: Dimension,
        kind: DimensionKind,
        expression: str,
        label: str | None = None,
        identifier_expression: str | None = None,
        label_callback: Callable[[Any], Any] | None = None,
    ) -> None:
        self.fact = fact
        self.dimension = dimension
        self.kind = kind
        self.expression = expression
        self.label = label
        self.identifier_expression = identifier_expression
        self.label_callback = label_callback

    @property
    def name(self) -> str:
        return self.dimension.name

    @property
    def source(self) -> str:
        if self.dimension.relation is not None:
            return f"{self.fact.name}->{self.dimension.relation.fact}"
        return f"{self.fact.name}.{self.dimension.column}"

    @property
    def identifier_name(self) -> str:
        return f"{self.name}_identifier"

    @property
    def join_name(self) -> str | None:
        """Relation to join for this dimension, None for columns on the fact."""
        if self.dimension.type == DimensionType.RELATION:
            return self.name
        return None

    def _key(self) -> tuple[str, str, str | None]:
        return (self.name, self.source, self.label)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReportingDimension):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        label = f":{self.label}" if self.label else ""
        return f"ReportingDimension({self.name}{label})"

    def _identified(self, with_identifier: bool) -> bool:
        return with_identifier and self.identifier_expression is not None

    # --- plain grouped statement ---

    def select_statement(self, with_identifier: bool = True) -> list[str]:
        exprs = [f"{self.expression} AS {self.name}"]
        if self._identified(with_identifier):
            exprs.append(f"{self.identifier_expression} AS {self.identifier_name}")
        return exprs

    def group_by_statement(self, with_identifier: bool = True) -> list[str]:
        exprs = [self.expression]
        if self._identified(with_identifier):
            exprs.append(self.identifier_expression)
        return exprs

    def order_by_statement(self, direction: SortDirection | str = SortDirection.ASC) -> str:
        return f"{self.expression} {SortDirection(direction).value.upper()}"

    # --- distinct-rows rewrite (sum, avg): inner distinct rows, outer aggregate over T ---

    def select_statement_always_rename(self, with_identifier: bool = True) -> list[str]:
        """Select list for the inner query, every column aliased so the
        outer query can refer to it by name."""
        return self.select_statement(with_identifier)

    def select_statement_no_rename(self, with_identifier: bool = True) -> list[str]:
        """Select list for the outer query - the inner aliases, unaliased."""
        exprs = [f"{DERIVED_TABLE}.{self.name}"]
        if self._identified(with_identifier):
            exprs.append(f"{DERIVED_TABLE}.{self.identifier_name}")
        return exprs

    def outer_order_by_statement(self, direction: SortDirection | str = SortDirection.ASC) -> str:
        return f"{DERIVED_TABLE}.{self.name} {SortDirection(direction).value.upper()}"

    # --- construction ---

    @classmethod
    def build(
        cls,
        fact: Fact,
        name: str,
        label: str | None,
        registry: SchemaRegistry,
        dialect: str,
    ) -> ReportingDimension:
        """Resolve dimension `name` (with optional label) on `fact`.

        Raises:
            UnknownDimension: fact doesn't declare `name`.
            InvalidDimensionLabel: label can't be used for this dimension,
                e.g. a precision the dialect's adapter can't truncate to.
        """
        dimension = fact.get_dimension(name)
        if dimension is None:
            raise UnknownDimension(f"Unknown dimension '{name}' on fact '{fact.name}'")

        if dimension.type == DimensionType.RELATION:
            return cls._build_relation(fact, dimension, label, registry)
        if dimension.type == DimensionType.TIME and label is not None:
            return cls._build_datetime(fact, dimension, label, dialect)
        if label is not None:
            raise InvalidDimensionLabel(
                f"Dimension '{name}' on fact '{fact.name}' does not take a label ('{label}')"
            )

        return cls(
            fact,
            dimension,
            DimensionKind.STANDARD,
            expression=fact.qualify(dimension.column),
            label_callback=dimension.label_callback,
        )

    @classmethod
    def _build_relation(
        cls, fact: Fact, dimension: Dimension, label: str | None, registry: SchemaRegistry
    ) -> ReportingDimension:
        target = registry.get_fact(dimension.relation.fact)
        label = label or target.default_dimension_label
        if label not in target.labels:
            raise InvalidDimensionLabel(
                f"'{label}' is not a dimension label of fact '{target.name}' "
                f"(allowed: {', '.join(target.labels) or 'none'})"
            )
        return cls(
            fact,
            dimension,
            DimensionKind.STANDARD,
            expression=f"{dimension.name}.{label}",
            label=label,
            identifier_expression=f"{dimension.name}.{target.primary_key}",
            label_callback=dimension.label_callback,
        )

    @classmethod
    def _build_datetime(
        cls, fact: Fact, dimension: Dimension, label: str, dialect: str
    ) -> ReportingDimension:
        try:
            precision = TimePrecision(label)
        except ValueError:
            raise InvalidDimensionLabel(
                f"'{label}' is not a valid time precision for dimension '{dimension.name}'"
            ) from None

        adapter = function_adapter_for(dialect)
        if adapter is None:
            raise InvalidDimensionLabel(
                f"No date functions available for dialect '{dialect}', "
                f"can't group '{dimension.name}' by {precision.value}"
            )
        if not adapter.supports(precision):
            raise InvalidDimensionLabel(
                f"Precision '{precision.value}' is not supported for dialect '{dialect}'"
            )

        callback = dimension.label_callback or DEFAULT_LABEL_CALLBACKS.get(precision)
        return cls(
            fact,
            dimension,
            DimensionKind.DATETIME,
            expression=adapter.truncate(precision, fact.qualify(dimension.column)),
            label=precision.value,
            label_callback=callback,
        )


def iter_dimension_refs(refs: Iterable[DimensionRef]) -> Iterable[tuple[str, str | None]]:
    """Flatten ["kind", {"released_on": "quarter"}] into (name, label) pairs."""
    for ref in refs:
        if isinstance(ref, str):
            yield ref, None
        elif isinstance(ref, dict):
            for name, label in ref.items():
                yield name, (None if label is None else str(label))
        else:
            raise TypeError(f"Dimension must be a name or a {{name: label}} mapping, got {ref!r}")


def build_from_dimensions(
    fact: Fact, refs: Iterable[DimensionRef], registry: SchemaRegistry, dialect: str
) -> list[ReportingDimension]:
    return merge_dimensions(
        ReportingDimension.build(fact, name, label, registry, dialect)
        for name, label in iter_dimension_refs(refs)
    )


def merge_dimensions(*groups: Iterable[ReportingDimension]) -> list[ReportingDimension]:
    """Concatenate dimension lists, dropping repeats and keeping first-seen order.

    Raises:
        AmbiguousDimension: one name asked for with two different labels or sources.
    """
    merged: dict[str, ReportingDimension] = {}
    for group in groups:
        for dimension in group:
            existing = merged.get(dimension.name)
            if existing is None:
                merged[dimension.name] = dimension
            elif existing != dimension:
                raise AmbiguousDimension(
                    f"Dimension '{dimension.name}' requested as both "
                    f"{existing!r} and {dimension!r}"
                )
    return list(merged.values())
