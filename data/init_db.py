"""Initialize DuckDB database with sample data."""

from reportforge.executor.duckdb_executor import DuckDBBackend

TABLES = ("series", "figures", "tags")


def init_database(db_path: str = "data/figures.duckdb", data_dir: str = "data"):
    """Create a DuckDB database with the generated parquet files loaded."""
    backend = DuckDBBackend(db_path)

    for table in TABLES:
        backend.conn.execute(f"""
            CREATE OR REPLACE TABLE {table} AS
            SELECT * FROM read_parquet('{data_dir}/{table}.parquet')
        """)

    print(f"Database initialized at {db_path}")

    # Show stats
    for table in TABLES:
        count = backend.execute(f"SELECT COUNT(*) AS n FROM {table}").data[0]["n"]
        print(f"  - {count} {table}")

    backend.close()


if __name__ == "__main__":
    init_database()
