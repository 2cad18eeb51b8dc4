"""Backend execution interface."""

from abc import ABC, abstractmethod
from typing import Any

from reportforge.models.query import QueryResult


class Backend(ABC):
    """Abstract base class for the relational backends reports run on.

    the compiler needs exactly two things from a backend: run a statement
    and say which dialect it speaks, so the right function adapter and
    sqlglot dialect get picked. timeouts and cancellation are the backend's
    business.
    """

    @abstractmethod
    def execute(self, sql: str) -> QueryResult:
        """Execute SQL and return its rows as dicts.

        errors from the database are raised as they are.
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Dialect name used to look up function adapters (e.g. 'DuckDB', 'PostgreSQL')."""
        raise NotImplementedError

    @property
    @abstractmethod
    def sqlglot_dialect(self) -> str:
        """SQLGlot dialect name (e.g. 'duckdb', 'postgres')."""
        raise NotImplementedError

    def close(self) -> None:
        """Close the connection, if the backend holds one."""

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
