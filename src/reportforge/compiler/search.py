"""Generic attribute search for dimension filters.

a search term is "<attribute>_<predicate>": price_gteq, kind_in, name_cont.
if the attribute isn't a declared dimension but starts with the name of a
relation dimension, the relation gets joined and the rest is a column on it,
so tags_name_eq filters on tags.name. all terms of one report go through a
single evaluate() call and end up ANDed.
"""

import logging
from collections.abc import Mapping
from typing import Any

from reportforge.compiler.scope import QueryScope
from reportforge.models.fact import DimensionType, validate_identifier

logger = logging.getLogger(__name__)

# "{column}" and "{value}" get filled in, value already rendered as a literal
PREDICATES: dict[str, str] = {
    "eq": "{column} = {value}",
    "not_eq": "{column} <> {value}",
    "lt": "{column} < {value}",
    "lteq": "{column} <= {value}",
    "lte": "{column} <= {value}",
    "gt": "{column} > {value}",
    "gteq": "{column} >= {value}",
    "gte": "{column} >= {value}",
    "in": "{column} IN {value}",
    "not_in": "{column} NOT IN {value}",
    "cont": "{column} LIKE {value}",
    "start": "{column} LIKE {value}",
    "end": "{column} LIKE {value}",
}

# longest first so not_eq wins over eq and gteq over eq
_SUFFIXES = sorted([*PREDICATES, "null", "not_null"], key=len, reverse=True)


def split_search_term(term: str) -> tuple[str, str]:
    """Split "price_gteq" into ("price", "gteq")."""
    for predicate in _SUFFIXES:
        suffix = f"_{predicate}"
        if term.endswith(suffix) and len(term) > len(suffix):
            return term[: -len(suffix)], predicate
    raise ValueError(f"Unrecognised search term '{term}'")


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple, set)) and not value)


class SearchTermEvaluator:
    """Turns a mapping of search terms into where conditions on a scope."""

    def evaluate(self, scope: QueryScope, terms: Mapping[str, Any]) -> QueryScope:
        conditions = []
        for term, value in terms.items():
            attribute, predicate = split_search_term(term)

            # blank values are ignored rather than matching nothing
            if predicate not in ("null", "not_null") and _is_blank(value):
                logger.debug("Skipping blank search term %s", term)
                continue

            scope, column = self._resolve_column(scope, attribute)
            conditions.append(self._condition(scope, column, predicate, value))

        if not conditions:
            return scope
        return scope.where(*conditions)

    def _resolve_column(self, scope: QueryScope, attribute: str) -> tuple[QueryScope, str]:
        fact = scope.fact

        # declared dimensions first, tags_total stays figures.tags_total
        dimension = fact.get_dimension(attribute)
        if dimension is not None and dimension.type != DimensionType.RELATION:
            return scope, fact.qualify(dimension.column)

        # relation attributes: <relation>_<column>
        for dimension in fact.relation_dimensions():
            prefix = f"{dimension.name}_"
            if attribute.startswith(prefix) and len(attribute) > len(prefix):
                column = validate_identifier(attribute[len(prefix) :], "search attribute")
                return scope.join_relation(dimension.name), f"{dimension.name}.{column}"

        return scope, fact.qualify(validate_identifier(attribute, "search attribute"))

    def _condition(self, scope: QueryScope, column: str, predicate: str, value: Any) -> str:
        if predicate in ("null", "not_null"):
            wants_null = value in (True, "true", 1, "1")
            if predicate == "not_null":
                wants_null = not wants_null
            return f"{column} IS NULL" if wants_null else f"{column} IS NOT NULL"

        if predicate in ("in", "not_in"):
            if not isinstance(value, (list, tuple, set, frozenset)):
                value = [value]
            rendered = scope.literal(list(value))
        elif predicate == "cont":
            rendered = scope.literal(f"%{value}%")
        elif predicate == "start":
            rendered = scope.literal(f"{value}%")
        elif predicate == "end":
            rendered = scope.literal(f"%{value}")
        else:
            rendered = scope.literal(value)

        return PREDICATES[predicate].format(column=column, value=rendered)
