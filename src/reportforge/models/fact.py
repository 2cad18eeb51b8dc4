"""Pydantic models for fact declarations.

a fact is the thing being reported on - one table with a measure column,
a set of dimensions you can group by and a set of named filters. these are
plain declarations: the compiler package turns them into sql.

everything is frozen. facts are declared once at startup through the
registry builder and only read after that.
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ImportString, field_validator, model_validator

# letters, digits and underscores, must not start with a digit.
# anything we splice into sql unquoted has to match this
_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(value: str, name: str = "identifier") -> str:
    """Validate that a value is a safe, unqualified SQL identifier.

    Raises:
        ValueError: If the identifier contains anything but letters, digits
            and underscores, or starts with a digit.
    """
    if not value:
        raise ValueError(f"Invalid {name}: cannot be empty")
    if not _IDENTIFIER_PATTERN.match(value):
        raise ValueError(
            f"Invalid {name}: '{value}'. Identifiers must start with a letter or "
            f"underscore and contain only letters, digits and underscores."
        )
    return value


def is_identifier(value: str) -> bool:
    return bool(_IDENTIFIER_PATTERN.match(value))


class TimePrecision(str, Enum):
    """Precisions a time dimension can be truncated to.

    same list postgres accepts for date_trunc. not every backend can do
    the last three, see the function adapters.
    """

    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    DECADE = "decade"
    CENTURY = "century"
    MILLENNIUM = "millennium"


class DimensionType(str, Enum):
    """Types of dimensions.

    relation dimensions point at another fact and need a join, time
    dimensions can be truncated, everything else is a plain column.
    """

    CATEGORICAL = "categorical"
    TIME = "time"
    RELATION = "relation"


class RelationKind(str, Enum):
    BELONGS_TO = "belongs_to"  # fact.foreign_key -> target.primary_key
    HAS_MANY = "has_many"  # target.foreign_key -> fact.primary_key, fans out rows


class FilterKind(str, Enum):
    """How a dimension filter restricts rows.

    scope filters call a named predicate declared with the fact, search
    filters go through the generic attribute search, custom filters call a
    python function with the current scope.
    """

    SCOPE = "scope"
    SEARCH = "search"
    CUSTOM = "custom"


class Relation(BaseModel):
    """Join from a fact to another fact."""

    model_config = ConfigDict(frozen=True)

    fact: str  # name of the target fact
    kind: RelationKind = RelationKind.BELONGS_TO
    foreign_key: str

    @field_validator("foreign_key")
    @classmethod
    def _check_foreign_key(cls, value: str) -> str:
        return validate_identifier(value, "foreign key")

    @property
    def to_many(self) -> bool:
        return self.kind == RelationKind.HAS_MANY


class Dimension(BaseModel):
    """A dimension declared on a fact.

    the declaration only says what the column is. which precision or label
    gets used is decided per metric/report, see ReportingDimension.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: DimensionType = DimensionType.CATEGORICAL
    expr: str | None = None  # column or sql expression, defaults to name
    relation: Relation | None = None  # required for relation dimensions
    # dotted paths like "myapp.labels:quarter_name" are imported on load
    label_callback: ImportString[Callable[..., Any]] | None = None
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_identifier(value, "dimension name")

    @model_validator(mode="after")
    def _check_relation(self) -> Self:
        if self.type == DimensionType.RELATION and self.relation is None:
            raise ValueError(f"Relation dimension '{self.name}' needs a relation")
        if self.type != DimensionType.RELATION and self.relation is not None:
            raise ValueError(f"Dimension '{self.name}' has a relation but type '{self.type.value}'")
        return self

    @property
    def column(self) -> str:
        return self.expr or self.name


class FilterDeclaration(BaseModel):
    """A named dimension filter declared on a fact."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: FilterKind = FilterKind.SCOPE
    # custom filters only: called as function(scope, value_or_none) -> scope
    function: ImportString[Callable[..., Any]] | None = None

    @model_validator(mode="after")
    def _check_function(self) -> Self:
        if self.kind == FilterKind.CUSTOM and self.function is None:
            raise ValueError(f"Custom dimension filter '{self.name}' needs a function")
        if self.kind != FilterKind.CUSTOM and self.function is not None:
            raise ValueError(f"Only custom dimension filters take a function ('{self.name}')")
        return self


class Fact(BaseModel):
    """A fact maps to a single table and everything you can report on it.

    measure and default_dimension_label are left unset in yaml most of the
    time; the registry builder fills them from the config when it freezes.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    table: str | None = None  # defaults to name
    primary_key: str = "id"
    measure: str | None = None
    dimensions: tuple[Dimension, ...] = ()
    dimension_filters: tuple[FilterDeclaration, ...] = ()
    aggregate_expressions: dict[str, str] = Field(default_factory=dict)
    # native scopes: name -> sql predicate, ":value" is replaced by the argument
    scopes: dict[str, str] = Field(default_factory=dict)
    default_dimension_label: str | None = None
    dimension_labels: tuple[str, ...] = ()
    search_fallback: bool | None = None  # None means use the config

    @field_validator("name", "primary_key")
    @classmethod
    def _check_identifiers(cls, value: str) -> str:
        return validate_identifier(value)

    @field_validator("table", "measure", "default_dimension_label")
    @classmethod
    def _check_optional_identifiers(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return validate_identifier(value)

    @field_validator("dimension_labels")
    @classmethod
    def _check_labels(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for label in value:
            validate_identifier(label, "dimension label")
        return value

    @model_validator(mode="after")
    def _check_unique_names(self) -> Self:
        seen: set[str] = set()
        for dimension in self.dimensions:
            if dimension.name in seen:
                raise ValueError(f"Duplicate dimension '{dimension.name}' on fact '{self.name}'")
            seen.add(dimension.name)

        seen = set()
        for dimension_filter in self.dimension_filters:
            if dimension_filter.name in seen:
                raise ValueError(
                    f"Duplicate dimension filter '{dimension_filter.name}' on fact '{self.name}'"
                )
            seen.add(dimension_filter.name)
        return self

    def get_table_name(self) -> str:
        return self.table or self.name

    def qualify(self, column: str) -> str:
        """Prefix a column with the table name.

        expressions that aren't plain identifiers are returned untouched,
        they're expected to qualify their own columns.
        """
        if is_identifier(column):
            return f"{self.get_table_name()}.{column}"
        return column

    @property
    def primary_key_column(self) -> str:
        return f"{self.get_table_name()}.{self.primary_key}"

    @property
    def labels(self) -> tuple[str, ...]:
        """Every column allowed as a label when this fact is a dimension."""
        default = self.default_dimension_label
        extra = tuple(label for label in self.dimension_labels if label != default)
        return ((default,) if default else ()) + extra

    def get_dimension(self, name: str) -> Dimension | None:
        for dimension in self.dimensions:
            if dimension.name == name:
                return dimension
        return None

    def get_dimension_filter(self, name: str) -> FilterDeclaration | None:
        for dimension_filter in self.dimension_filters:
            if dimension_filter.name == name:
                return dimension_filter
        return None

    def relation_dimensions(self) -> list[Dimension]:
        return [d for d in self.dimensions if d.type == DimensionType.RELATION]
