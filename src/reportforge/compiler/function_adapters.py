"""Per-dialect SQL function adapters.

the only functions that differ enough between backends to matter here are
date truncation and multi-argument COUNT(DISTINCT ...). adapters are picked
by the backend's dialect name, same names the connection reports.

postgres and duckdb have a native date_trunc. mysql doesn't, so we count
whole units between a fixed anchor and the value and add them back on.
"""

from datetime import date

from reportforge.errors import UnsupportedPrecision
from reportforge.models.fact import TimePrecision

# 0001-01-01 is a monday in the proleptic gregorian calendar, so whole weeks
# counted from it always land on a monday whatever the server's week mode is
MYSQL_EPOCH = "'0001-01-01'"
MYSQL_EPOCH_DATE = date(1, 1, 1)


def count_distinct_sql(primary_key: str, expression: str | None = None) -> str:
    """COUNT(DISTINCT pk), optionally only for rows where expression is not null.

    this is what COUNT(DISTINCT pk, expr) means on mysql, spelled so every
    other backend accepts it.
    """
    if expression is None:
        return f"COUNT(DISTINCT {primary_key})"
    return f"COUNT(DISTINCT CASE WHEN ({expression}) IS NOT NULL THEN {primary_key} END)"


class DateTruncAdapter:
    """Base adapter: knows which precisions it can truncate to and how."""

    dialect_name: str = ""
    precisions: tuple[TimePrecision, ...] = tuple(TimePrecision)

    def supports(self, precision: str | TimePrecision) -> bool:
        try:
            return TimePrecision(precision) in self.precisions
        except ValueError:
            return False

    def truncate(self, precision: str | TimePrecision, column: str) -> str:
        """Build an expression truncating `column` to `precision`.

        Args:
            precision: one of the TimePrecision values.
            column: qualified column or any sql expression producing a timestamp.

        Raises:
            UnsupportedPrecision: precision unknown or not supported by this backend.
        """
        try:
            value = TimePrecision(precision)
        except ValueError:
            raise UnsupportedPrecision(
                f"Precision '{precision}' is not valid, use one of: "
                f"{', '.join(p.value for p in TimePrecision)}"
            ) from None
        if value not in self.precisions:
            raise UnsupportedPrecision(
                f"Precision '{value.value}' is not supported for {self.dialect_name}"
            )
        return self._truncate(value, column)

    def _truncate(self, precision: TimePrecision, column: str) -> str:
        raise NotImplementedError

    def count_distinct(self, primary_key: str, expression: str | None = None) -> str:
        return count_distinct_sql(primary_key, expression)


class PostgresFunctions(DateTruncAdapter):
    """PostgreSQL - date_trunc does everything, weeks start on monday (ISO)."""

    dialect_name = "PostgreSQL"

    def _truncate(self, precision: TimePrecision, column: str) -> str:
        return f"DATE_TRUNC('{precision.value}', {column})"


class DuckDBFunctions(PostgresFunctions):
    """DuckDB copies postgres' date_trunc, including ISO weeks and the
    decade/century/millennium parts."""

    dialect_name = "DuckDB"


class MySQLFunctions(DateTruncAdapter):
    """MySQL - date_trunc emulated with TIMESTAMPDIFF from a fixed epoch.

    TIMESTAMPDIFF has no decade/century/millennium units so those are
    rejected instead of approximated. results for day and above come back
    without the trailing 00:00:00 postgres gives you.
    """

    dialect_name = "MySQL"
    precisions = (
        TimePrecision.SECOND,
        TimePrecision.MINUTE,
        TimePrecision.HOUR,
        TimePrecision.DAY,
        TimePrecision.WEEK,
        TimePrecision.MONTH,
        TimePrecision.QUARTER,
        TimePrecision.YEAR,
    )

    def _truncate(self, precision: TimePrecision, column: str) -> str:
        unit = precision.value.upper()
        return (
            f"DATE_ADD({MYSQL_EPOCH}, "
            f"INTERVAL TIMESTAMPDIFF({unit}, {MYSQL_EPOCH}, {column}) {unit})"
        )

    def count_distinct(self, primary_key: str, expression: str | None = None) -> str:
        # mysql skips rows where any argument is null, which is exactly the gate we want
        if expression is None:
            return f"COUNT(DISTINCT {primary_key})"
        return f"COUNT(DISTINCT {primary_key}, {expression})"


# keyed by the name the backend reports for its dialect
FUNCTION_ADAPTERS: dict[str, DateTruncAdapter] = {
    "PostgreSQL": PostgresFunctions(),
    "DuckDB": DuckDBFunctions(),
    "MySQL": MySQLFunctions(),
    "Mysql2": MySQLFunctions(),
}


def function_adapter_for(dialect_name: str) -> DateTruncAdapter | None:
    """Adapter registered for a dialect, or None if the backend has none."""
    return FUNCTION_ADAPTERS.get(dialect_name)
