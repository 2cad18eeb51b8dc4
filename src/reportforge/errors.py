"""Exceptions raised by ReportForge.

everything here is a caller or configuration mistake, never a transient
condition. each error also subclasses the matching builtin: KeyError for
unknown names, ValueError for bad declarations.
"""


class ReportingError(Exception):
    """Base class for all ReportForge errors."""


class UnknownAggregate(ReportingError, ValueError):
    """Aggregate kind is not one of count, sum, max, min, avg."""


class UnsupportedAggregateExpression(ReportingError, ValueError):
    """Aggregate expression used with an aggregate that can't take one,
    or the alias isn't declared on the fact."""


class UnknownDimensionFilter(ReportingError, KeyError):
    """Dimension filter not declared on the fact and no search fallback."""

    def __init__(self, name: str, fact_name: str) -> None:
        self.name = name
        self.fact_name = fact_name
        super().__init__(f"Unknown dimension filter '{name}' on fact '{fact_name}'")

    def __str__(self) -> str:
        # KeyError.__str__ wraps the message in quotes
        return str(self.args[0])


class SearchBackendUnavailable(ReportingError, RuntimeError):
    """Search-term fallback requested but no search evaluator is available."""


class AmbiguousDimension(ReportingError, ValueError):
    """Same dimension name requested with a conflicting label or source."""


class InvalidDimensionLabel(ReportingError, ValueError):
    """Dimension label (time precision or related column) can't be used here."""


class UnknownMetric(ReportingError, KeyError):
    """Report requested against an undeclared metric."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnsupportedPrecision(ReportingError, ValueError):
    """Date truncation adapter given a precision it can't produce."""


class UnknownFact(ReportingError, KeyError):
    """Fact name not declared in the registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnknownDimension(ReportingError, KeyError):
    """Dimension name not declared on the fact."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
