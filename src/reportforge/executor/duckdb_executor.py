"""DuckDB backend for ReportForge.

duckdb is embedded, fast at aggregations and its date_trunc behaves like
postgres', so it's the default backend and what the tests run against.
in-memory mode is handy for tests and one-off reports.
"""

import logging
import time
from pathlib import Path

import duckdb

from reportforge.executor.base import Backend
from reportforge.models.query import QueryResult

logger = logging.getLogger(__name__)


class DuckDBBackend(Backend):
    """Execute reports against DuckDB.

    thin wrapper around the connection that keeps the duckdb-specific bits
    out of the compiler.
    """

    def __init__(self, database_path: str | None = None) -> None:
        """Initialize the backend.

        Args:
            database_path: Path to DuckDB file, or None for in-memory.
        """
        self.database_path = database_path
        self._conn: duckdb.DuckDBPyConnection | None = None  # lazy init

    @property
    def dialect_name(self) -> str:
        return "DuckDB"

    @property
    def sqlglot_dialect(self) -> str:
        return "duckdb"

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection.

        nothing is opened until the first statement actually needs it.
        """
        if self._conn is None:
            self._conn = duckdb.connect(self.database_path or ":memory:")
        return self._conn

    def execute(self, sql: str) -> QueryResult:
        """Execute SQL and return structured results, timing the call."""
        start = time.perf_counter()

        result = self.conn.execute(sql)
        # statements without a result set (DDL) have no description
        columns = [desc[0] for desc in result.description] if result.description else []
        rows = result.fetchall() if result.description else []

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("Executed statement in %.2fms, %d rows", elapsed_ms, len(rows))

        data = [dict(zip(columns, row)) for row in rows]

        return QueryResult(
            sql=sql,
            columns=columns,
            data=data,
            row_count=len(data),
            execution_time_ms=round(elapsed_ms, 2),
        )

    def load_csv(self, table_name: str, path: str | Path) -> None:
        """Load a CSV file as a table.

        read_csv_auto works out delimiters and types by itself.
        """
        path = Path(path)
        self.conn.execute(f"""
            CREATE OR REPLACE TABLE {table_name} AS
            SELECT * FROM read_csv_auto('{path}')
        """)

    def table_exists(self, table_name: str) -> bool:
        result = self.conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        )
        return result.fetchone()[0] > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
