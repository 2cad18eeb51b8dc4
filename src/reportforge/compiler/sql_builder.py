"""SQL statement assembly and formatting.

statements are put together as text from already-rendered pieces and then
run through sqlglot's pretty printer for the target dialect. sqlglot only
formats here, the semantics are all decided by the report.
"""

import logging
from dataclasses import dataclass, field

import sqlglot
from sqlglot.errors import SqlglotError

logger = logging.getLogger(__name__)


@dataclass
class SelectStatement:
    """One SELECT, clause by clause.

    from_clause is either a table with its joins or a parenthesised
    subquery with an alias.
    """

    select: list[str]
    from_clause: str
    distinct: bool = False
    where: str | None = None
    group_by: list[str] = field(default_factory=list)
    having: list[str] = field(default_factory=list)
    order_by: list[str] = field(default_factory=list)
    limit: int | None = None

    def render(self) -> str:
        keyword = "SELECT DISTINCT" if self.distinct else "SELECT"
        select_list = ",\n  ".join(self.select)
        parts = [f"{keyword}\n  {select_list}", f"FROM {self.from_clause}"]

        if self.where:
            parts.append(f"WHERE {self.where}")
        if self.group_by:
            parts.append(f"GROUP BY {', '.join(self.group_by)}")
        if self.having:
            # all thresholds ANDed together
            parts.append(f"HAVING {' AND '.join(self.having)}")
        if self.order_by:
            parts.append(f"ORDER BY {', '.join(self.order_by)}")
        if self.limit:
            parts.append(f"LIMIT {self.limit}")

        return "\n".join(parts)

    def as_subquery(self, alias: str) -> str:
        return f"(\n{self.render()}\n) AS {alias}"


def format_sql(sql: str, dialect: str = "duckdb", pretty: bool = True) -> str:
    """Format SQL with sqlglot.

    if sqlglot can't parse something (a custom filter doing something exotic)
    the unformatted text is returned and the backend gets the final say.
    """
    if not pretty:
        return sql
    try:
        return sqlglot.transpile(sql, read=dialect, write=dialect, pretty=True)[0]
    except SqlglotError as e:
        logger.debug("Could not format SQL for %s: %s", dialect, e)
        return sql
