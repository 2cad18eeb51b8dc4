"""Named predicates ("scopes") the backend knows about.

a scope dimension filter doesn't carry any sql itself, it names a predicate
declared next to the fact - either a sql template in yaml or a python
function registered on the builder. the compiler only ever goes through
has_predicate / invoke_named_predicate.
"""

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, Protocol

from reportforge.compiler.scope import QueryScope

VALUE_PLACEHOLDER = ":value"

# python scopes are called as predicate(scope, argument_or_none) -> scope
ScopeFunction = Callable[[QueryScope, Any], QueryScope]


class NamedPredicates(Protocol):
    """Capability interface for backend-defined named predicates."""

    def has_predicate(self, fact_name: str, name: str) -> bool: ...

    def invoke_named_predicate(
        self, scope: QueryScope, name: str, argument: Any = None
    ) -> QueryScope: ...


class ScopeCatalog:
    """Read-only catalog of scopes per fact.

    sql templates use ":value" for the argument, e.g. "figures.price < :value".
    a template without the placeholder is a zero-argument scope.
    """

    def __init__(self, scopes: Mapping[str, Mapping[str, str | ScopeFunction]] | None = None) -> None:
        self._scopes = MappingProxyType(
            {fact: MappingProxyType(dict(named)) for fact, named in (scopes or {}).items()}
        )

    def has_predicate(self, fact_name: str, name: str) -> bool:
        return name in self._scopes.get(fact_name, {})

    def names(self, fact_name: str) -> list[str]:
        return sorted(self._scopes.get(fact_name, {}))

    def invoke_named_predicate(
        self, scope: QueryScope, name: str, argument: Any = None
    ) -> QueryScope:
        """Apply scope `name` of the scope's fact.

        Raises:
            KeyError: no such scope on the fact.
            ValueError: argument missing for a parametrised template, or
                given to a template that takes none.
        """
        fact_scopes = self._scopes.get(scope.fact.name, {})
        if name not in fact_scopes:
            raise KeyError(f"Fact '{scope.fact.name}' has no scope '{name}'")

        predicate = fact_scopes[name]
        if callable(predicate):
            return predicate(scope, argument)

        if VALUE_PLACEHOLDER in predicate:
            if argument is None:
                raise ValueError(f"Scope '{name}' needs an argument")
            return scope.where(predicate.replace(VALUE_PLACEHOLDER, scope.literal(argument)))

        if argument is not None:
            raise ValueError(f"Scope '{name}' takes no argument, got {argument!r}")
        return scope.where(predicate)
