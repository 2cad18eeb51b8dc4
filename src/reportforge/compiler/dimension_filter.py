"""Dimension filters: named restrictions on which fact rows count.

three kinds, applied in a fixed order because the earlier ones can narrow
the rows the later ones look at:

  1. scope  - a named predicate declared with the fact
  2. custom - a python function (scope, value_or_none) -> scope
  3. search - attribute/operator terms, all sent to the evaluator in one go

a value of True or "true" means "switch this filter on": scope and custom
predicates then get None instead of the value.
"""

import logging
from collections.abc import Callable
from typing import Any

from reportforge.compiler.scope import QueryScope
from reportforge.compiler.search import SearchTermEvaluator
from reportforge.errors import SearchBackendUnavailable
from reportforge.executor.predicates import NamedPredicates
from reportforge.models.fact import FilterDeclaration, FilterKind

logger = logging.getLogger(__name__)


def is_switch(value: Any) -> bool:
    """True for the values that mean "apply with no argument"."""
    return value is True or value == "true"


class DimensionFilter:
    """A resolved dimension filter - declared on the fact or a search fallback."""

    def __init__(
        self,
        name: str,
        kind: FilterKind,
        function: Callable[[QueryScope, Any], QueryScope] | None = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self.function = function

    @classmethod
    def from_declaration(cls, declaration: FilterDeclaration) -> "DimensionFilter":
        return cls(declaration.name, declaration.kind, declaration.function)

    @classmethod
    def search_term(cls, name: str) -> "DimensionFilter":
        return cls(name, FilterKind.SEARCH)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DimensionFilter):
            return NotImplemented
        return (self.name, self.kind) == (other.name, other.kind)

    def __hash__(self) -> int:
        return hash((self.name, self.kind))

    def __repr__(self) -> str:
        return f"DimensionFilter({self.name}, {self.kind.value})"

    def apply(self, scope: QueryScope, value: Any, predicates: NamedPredicates) -> QueryScope:
        """Apply a scope or custom filter. Search filters go through
        PartitionedFilters so they can be batched."""
        argument = None if is_switch(value) else value

        if self.kind == FilterKind.SCOPE:
            return predicates.invoke_named_predicate(scope, self.name, argument)
        if self.kind == FilterKind.CUSTOM:
            return self.function(scope, argument)
        raise ValueError(f"Search filter '{self.name}' must be applied in a batch")


class PartitionedFilters:
    """Dimension filters of one report, split by kind."""

    def __init__(self) -> None:
        self.scope: dict[DimensionFilter, Any] = {}
        self.custom: dict[DimensionFilter, Any] = {}
        self.search: dict[DimensionFilter, Any] = {}

    def add(self, dimension_filter: DimensionFilter, value: Any) -> None:
        if dimension_filter.kind == FilterKind.SCOPE:
            self.scope[dimension_filter] = value
        elif dimension_filter.kind == FilterKind.CUSTOM:
            self.custom[dimension_filter] = value
        else:
            self.search[dimension_filter] = value

    def __len__(self) -> int:
        return len(self.scope) + len(self.custom) + len(self.search)

    def apply(
        self,
        scope: QueryScope,
        predicates: NamedPredicates,
        evaluator: SearchTermEvaluator | None,
    ) -> QueryScope:
        for dimension_filter, value in self.scope.items():
            scope = dimension_filter.apply(scope, value, predicates)

        for dimension_filter, value in self.custom.items():
            scope = dimension_filter.apply(scope, value, predicates)

        if self.search:
            if evaluator is None:
                raise SearchBackendUnavailable("Search filters used but no search evaluator is configured")
            terms = {f.name: value for f, value in self.search.items()}
            logger.debug("Applying search terms %s", terms)
            scope = evaluator.evaluate(scope, terms)

        return scope
