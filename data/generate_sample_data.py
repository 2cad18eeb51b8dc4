"""Generate sample figure-shop data for ReportForge."""

import random
from datetime import datetime, timedelta
from pathlib import Path

import duckdb

SERIES = [
    (1, "Super Mario", "SM"),
    (2, "The Legend of Zelda", "LoZ"),
    (3, "Animal Crossing", "AC"),
    (4, "Splatoon", "SPL"),
]
TAGS = ["classic", "limited", "jumping", "sword", "soft", "gold", "retro"]


def generate_sample_data(
    output_dir: Path | None = None, conn: duckdb.DuckDBPyConnection | None = None
) -> duckdb.DuckDBPyConnection:
    """Generate series, figures and tags.

    Args:
        output_dir: Directory to save Parquet files, or None for in-memory only.
        conn: Connection to create the tables in, a new in-memory one if omitted.

    Returns:
        DuckDB connection with loaded data.
    """
    random.seed(42)  # Reproducible data

    figures_data = generate_figures(500)
    tags_data = generate_tags(figures_data)

    if conn is None:
        conn = duckdb.connect(":memory:")

    conn.execute("CREATE TABLE series (id INTEGER PRIMARY KEY, name VARCHAR, title VARCHAR)")
    conn.executemany("INSERT INTO series VALUES (?, ?, ?)", SERIES)

    conn.execute("""
        CREATE TABLE figures (
            id INTEGER PRIMARY KEY,
            name VARCHAR,
            kind VARCHAR,
            price DECIMAL(10, 2),
            series_id INTEGER,
            active BOOLEAN,
            released_on TIMESTAMP
        )
    """)
    conn.executemany("INSERT INTO figures VALUES (?, ?, ?, ?, ?, ?, ?)", figures_data)

    conn.execute("CREATE TABLE tags (id INTEGER PRIMARY KEY, figure_id INTEGER, name VARCHAR)")
    conn.executemany("INSERT INTO tags VALUES (?, ?, ?)", tags_data)

    # Export to Parquet if output_dir provided
    if output_dir:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        for table in ("series", "figures", "tags"):
            conn.execute(f"COPY {table} TO '{output_dir}/{table}.parquet' (FORMAT PARQUET)")
        print(f"Data exported to {output_dir}")

    return conn


def generate_figures(count: int) -> list[tuple]:
    """Generate figure records."""
    kinds = ["figure", "figure", "figure", "yarn", "amiibo card", "amiibo card"]
    prices = {"figure": (12, 60), "yarn": (15, 25), "amiibo card": (3, 8)}

    start = datetime(2014, 11, 21)
    span_minutes = int((datetime(2024, 12, 31) - start).total_seconds() // 60)

    figures = []
    for i in range(1, count + 1):
        kind = random.choice(kinds)
        low, high = prices[kind]
        series_id = random.choice(SERIES)[0]

        figures.append(
            (
                i,
                f"{kind.title()} #{i}",
                kind,
                round(random.uniform(low, high), 2),
                series_id,
                random.random() > 0.2,  # active
                start + timedelta(minutes=random.randint(0, span_minutes)),
            )
        )

    return figures


def generate_tags(figures: list[tuple]) -> list[tuple]:
    """Give each figure up to three distinct tags."""
    tags = []
    for figure in figures:
        for name in random.sample(TAGS, random.randint(0, 3)):
            tags.append((len(tags) + 1, figure[0], name))
    return tags


if __name__ == "__main__":
    import sys

    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent
    conn = generate_sample_data(output_dir)

    # Print summary
    result = conn.execute("SELECT COUNT(*) FROM figures").fetchone()
    print(f"Generated {result[0]} figures")

    result = conn.execute("SELECT COUNT(*) FROM tags").fetchone()
    print(f"Generated {result[0]} tags")

    result = conn.execute("SELECT SUM(price) FROM figures WHERE active").fetchone()
    print(f"Active stock value: ${result[0]:,.2f}")

    conn.close()
