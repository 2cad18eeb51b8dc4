"""YAML parser and schema registry for ReportForge.

facts and metrics are declared in yaml (or in python through the builder),
checked once, and frozen into a SchemaRegistry. after build() nothing in the
registry changes, so any number of reports can read it at the same time.
build it completely before handing it to other threads - the builder itself
isn't synchronised.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from reportforge.compiler.dimension_filter import DimensionFilter
from reportforge.compiler.metric import Metric
from reportforge.compiler.search import SearchTermEvaluator
from reportforge.errors import (
    SearchBackendUnavailable,
    UnknownDimensionFilter,
    UnknownFact,
    UnknownMetric,
)
from reportforge.executor.predicates import ScopeCatalog, ScopeFunction
from reportforge.models.config import ReportingConfig
from reportforge.models.fact import DimensionType, Fact, FilterDeclaration, FilterKind
from reportforge.models.metric import MetricDefinition

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Read-only registry of facts and metrics.

    also carries the collaborators the compiler needs to resolve filters:
    the named predicate catalog and, if there is one, the search evaluator.
    """

    def __init__(
        self,
        facts: dict[str, Fact],
        metric_definitions: dict[str, MetricDefinition],
        config: ReportingConfig,
        dialect: str,
        named_predicates: ScopeCatalog,
        search_evaluator: SearchTermEvaluator | None,
    ) -> None:
        self.facts = MappingProxyType(dict(facts))
        self.config = config
        self.dialect = dialect
        self.named_predicates = named_predicates
        self.search_evaluator = search_evaluator

        # metrics validate against the facts above, so they're bound last
        self.metrics = MappingProxyType(
            {name: Metric.from_definition(d, self) for name, d in metric_definitions.items()}
        )

    @property
    def search_available(self) -> bool:
        return self.search_evaluator is not None

    def get_fact(self, name: str) -> Fact:
        if name not in self.facts:
            raise UnknownFact(f"Unknown fact: {name}")
        return self.facts[name]

    def get_metric(self, name: str) -> Metric:
        if name not in self.metrics:
            raise UnknownMetric(f"Unknown metric: {name}")
        return self.metrics[name]

    def search_fallback(self, fact: Fact) -> bool:
        """Whether undeclared filters on `fact` are treated as search terms."""
        if fact.search_fallback is not None:
            return fact.search_fallback
        return self.config.search_fallback

    def find_dimension_filter(self, fact: Fact, name: str) -> DimensionFilter:
        """Resolve a filter name used in a metric or report.

        Raises:
            UnknownDimensionFilter: not declared and no search fallback.
        """
        declaration = fact.get_dimension_filter(name)
        if declaration is not None:
            return DimensionFilter.from_declaration(declaration)
        if self.search_fallback(fact):
            return DimensionFilter.search_term(name)
        raise UnknownDimensionFilter(name, fact.name)


class RegistryBuilder:
    """Collects declarations and builds a SchemaRegistry.

    yaml and python declarations can be mixed - load a directory, then add
    the custom filters and scopes that need real functions.
    """

    def __init__(
        self,
        config: ReportingConfig | None = None,
        dialect: str | None = None,
        search_evaluator: SearchTermEvaluator | None = None,
        search_enabled: bool = True,
    ) -> None:
        self.config = config or ReportingConfig()
        self.dialect = dialect or self.config.dialect
        if search_evaluator is None and search_enabled:
            search_evaluator = SearchTermEvaluator()
        self.search_evaluator = search_evaluator

        self.facts: dict[str, Fact] = {}
        self.metric_definitions: dict[str, MetricDefinition] = {}
        self._python_scopes: dict[str, dict[str, ScopeFunction]] = {}

    def load_directory(self, path: str | Path) -> "RegistryBuilder":
        """Load all YAML files from a directory, recursively.

        order doesn't matter, references are only checked in build().
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Models directory not found: {path}")

        yaml_files = sorted(path.glob("**/*.yaml")) + sorted(path.glob("**/*.yml"))
        if not yaml_files:
            raise ValueError(f"No YAML files found in {path}")

        for yaml_file in yaml_files:
            self.load_file(yaml_file)
        return self

    def load_file(self, path: str | Path) -> "RegistryBuilder":
        """Parse a single YAML file with `facts`, `metrics` or both."""
        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return self  # empty file

        logger.debug("Loading declarations from %s", path)
        for fact_data in data.get("facts", []):
            self.add_fact(fact_data)
        for metric_data in data.get("metrics", []):
            self.add_metric(metric_data)
        return self

    def add_fact(self, fact: Fact | dict[str, Any]) -> Fact:
        if not isinstance(fact, Fact):
            fact = Fact.model_validate(fact)
        if fact.name in self.facts:
            raise ValueError(f"Duplicate fact: {fact.name}")
        self.facts[fact.name] = fact
        return fact

    def add_metric(self, metric: MetricDefinition | dict[str, Any]) -> MetricDefinition:
        if not isinstance(metric, MetricDefinition):
            metric = MetricDefinition.model_validate(metric)
        if metric.name in self.metric_definitions:
            raise ValueError(f"Duplicate metric: {metric.name}")
        self.metric_definitions[metric.name] = metric
        return metric

    def _fact(self, name: str) -> Fact:
        if name not in self.facts:
            raise UnknownFact(f"Unknown fact: {name}")
        return self.facts[name]

    def dimension_filter(
        self,
        fact_name: str,
        name: str,
        kind_or_function: str | FilterKind | Callable[..., Any] = FilterKind.SCOPE,
    ) -> FilterDeclaration:
        """Declare a dimension filter on a fact from python.

        pass "scope" (default) for a named predicate of the same name,
        "search" for a search term, or a function (scope, value) -> scope.
        """
        fact = self._fact(fact_name)
        if fact.get_dimension_filter(name) is not None:
            raise ValueError(f"Duplicate dimension filter '{name}' on fact '{fact_name}'")

        if callable(kind_or_function):
            declaration = FilterDeclaration(
                name=name, kind=FilterKind.CUSTOM, function=kind_or_function
            )
        else:
            declaration = FilterDeclaration(name=name, kind=FilterKind(kind_or_function))

        self.facts[fact_name] = fact.model_copy(
            update={"dimension_filters": fact.dimension_filters + (declaration,)}
        )
        return declaration

    def scope(self, fact_name: str, name: str, function: ScopeFunction) -> None:
        """Register a python named predicate: function(scope, argument_or_none) -> scope."""
        fact = self._fact(fact_name)
        if name in fact.scopes or name in self._python_scopes.get(fact_name, {}):
            raise ValueError(f"Duplicate scope '{name}' on fact '{fact_name}'")
        self._python_scopes.setdefault(fact_name, {})[name] = function

    def use_search_for_unknown_dimension_filters(self, fact_name: str) -> None:
        """Make undeclared filters on a fact fall back to search terms.

        Raises:
            SearchBackendUnavailable: the builder has no search evaluator.
        """
        if self.search_evaluator is None:
            raise SearchBackendUnavailable(
                f"Can't fall back to search terms on '{fact_name}': no search evaluator"
            )
        fact = self._fact(fact_name)
        self.facts[fact_name] = fact.model_copy(update={"search_fallback": True})

    def build(self) -> SchemaRegistry:
        """Fill defaults, check every reference and freeze."""
        facts = {name: self._with_defaults(fact) for name, fact in self.facts.items()}
        scopes = self._collect_scopes(facts)
        self._validate_references(facts, scopes)

        registry = SchemaRegistry(
            facts=facts,
            metric_definitions=self.metric_definitions,
            config=self.config,
            dialect=self.dialect,
            named_predicates=ScopeCatalog(scopes),
            search_evaluator=self.search_evaluator,
        )
        logger.info(
            "Built registry with %d facts and %d metrics (dialect %s)",
            len(registry.facts),
            len(registry.metrics),
            self.dialect,
        )
        return registry

    def _with_defaults(self, fact: Fact) -> Fact:
        updates: dict[str, Any] = {}
        if fact.measure is None:
            updates["measure"] = self.config.default_measure
        if fact.default_dimension_label is None:
            updates["default_dimension_label"] = self.config.default_dimension_label
        return fact.model_copy(update=updates) if updates else fact

    def _collect_scopes(self, facts: dict[str, Fact]) -> dict[str, dict[str, Any]]:
        scopes: dict[str, dict[str, Any]] = {}
        for name, fact in facts.items():
            scopes[name] = {**fact.scopes, **self._python_scopes.get(name, {})}
        return scopes

    def _validate_references(self, facts: dict[str, Fact], scopes: dict[str, dict[str, Any]]) -> None:
        for fact in facts.values():
            for dimension in fact.dimensions:
                if dimension.type == DimensionType.RELATION and dimension.relation.fact not in facts:
                    raise ValueError(
                        f"Dimension '{dimension.name}' on fact '{fact.name}' references "
                        f"unknown fact '{dimension.relation.fact}'"
                    )

            for declaration in fact.dimension_filters:
                if declaration.kind == FilterKind.SCOPE and declaration.name not in scopes[fact.name]:
                    raise ValueError(
                        f"Dimension filter '{declaration.name}' on fact '{fact.name}' "
                        f"has no scope of that name"
                    )
                if declaration.kind == FilterKind.SEARCH and self.search_evaluator is None:
                    raise SearchBackendUnavailable(
                        f"Dimension filter '{declaration.name}' on fact '{fact.name}' "
                        f"needs a search evaluator"
                    )

            fallback = fact.search_fallback
            if fallback is None:
                fallback = self.config.search_fallback
            if fallback and self.search_evaluator is None:
                raise SearchBackendUnavailable(
                    f"Fact '{fact.name}' falls back to search terms but there is no search evaluator"
                )

        for definition in self.metric_definitions.values():
            if definition.fact not in facts:
                raise ValueError(
                    f"Metric '{definition.name}' references unknown fact '{definition.fact}'"
                )
