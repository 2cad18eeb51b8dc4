"""Structured FROM / JOIN / WHERE for a report.

every filter takes a QueryScope and returns a new one. the report renders
the finished scope into either the plain grouped statement or the inner
half of the distinct-rows rewrite.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlglot import exp

from reportforge.errors import UnknownDimension
from reportforge.models.fact import DimensionType, Fact, RelationKind

if TYPE_CHECKING:
    from reportforge.parser.loader import SchemaRegistry


def sql_literal(value: Any, dialect: str = "duckdb") -> str:
    """Render a python value as a SQL literal for the dialect.

    lists/tuples/sets become a parenthesised list, ready for IN.
    """
    if isinstance(value, (list, tuple, set, frozenset)):
        return "(" + ", ".join(sql_literal(v, dialect) for v in value) + ")"
    if isinstance(value, Decimal):
        return exp.Literal.number(str(value)).sql(dialect=dialect)
    return exp.convert(value).sql(dialect=dialect)


@dataclass(frozen=True)
class Join:
    """One INNER JOIN, aliased and keyed by the relation dimension's name."""

    name: str
    table: str
    on: str

    def render(self) -> str:
        return f"INNER JOIN {self.table} AS {self.name} ON {self.on}"


@dataclass(frozen=True)
class QueryScope:
    """The row source of a report: fact table, joins and where conditions.

    immutable - every restriction returns a new scope, so a filter can't
    reach back and change what an earlier filter did.
    """

    fact: Fact
    registry: SchemaRegistry
    dialect: str = "duckdb"  # sqlglot dialect, used for literals
    joins: tuple[Join, ...] = ()
    conditions: tuple[str, ...] = field(default=())

    def where(self, *conditions: str) -> QueryScope:
        """Restrict the scope, conditions are ANDed."""
        return replace(self, conditions=self.conditions + tuple(conditions))

    def join(self, join: Join) -> QueryScope:
        # a relation is joined at most once however many filters/dimensions need it
        if any(existing.name == join.name for existing in self.joins):
            return self
        return replace(self, joins=self.joins + (join,))

    def join_relation(self, name: str) -> QueryScope:
        """Join the related fact behind a relation dimension of this fact."""
        return self.join(relation_join(self.fact, name, self.registry))

    def literal(self, value: Any) -> str:
        return sql_literal(value, self.dialect)

    def has_join(self, name: str) -> bool:
        return any(j.name == name for j in self.joins)

    def from_clause(self) -> str:
        parts = [self.fact.get_table_name()]
        parts.extend(j.render() for j in self.joins)
        return "\n".join(parts)

    def where_clause(self) -> str | None:
        if not self.conditions:
            return None
        return " AND ".join(f"({c})" for c in self.conditions)


def relation_join(fact: Fact, name: str, registry: SchemaRegistry) -> Join:
    """Build the join for relation dimension `name` on `fact`.

    the related table is aliased to the dimension name so two relations to
    the same fact don't collide.
    """
    dimension = fact.get_dimension(name)
    if dimension is None or dimension.type != DimensionType.RELATION:
        raise UnknownDimension(f"Fact '{fact.name}' has no relation dimension '{name}'")

    relation = dimension.relation
    target = registry.get_fact(relation.fact)

    if relation.kind == RelationKind.HAS_MANY:
        on = f"{name}.{relation.foreign_key} = {fact.primary_key_column}"
    else:
        on = f"{name}.{target.primary_key} = {fact.qualify(relation.foreign_key)}"

    return Join(name=name, table=target.get_table_name(), on=on)
