"""Pytest fixtures for ReportForge tests."""

from collections.abc import Generator
from pathlib import Path

import pytest

from reportforge.executor.base import Backend
from reportforge.executor.duckdb_executor import DuckDBBackend
from reportforge.models.query import QueryResult
from reportforge.parser.loader import RegistryBuilder, SchemaRegistry
from reportforge.store import ReportStore


@pytest.fixture
def sample_models_yaml() -> str:
    """Figures shop: figures belong to a series and have many tags."""
    return """
facts:
  - name: figures
    description: "Figures and cards for sale"
    table: figures
    measure: price

    dimensions:
      - name: kind
        description: "figure, yarn or amiibo card"
      - name: series
        type: relation
        relation:
          fact: series
          kind: belongs_to
          foreign_key: series_id
      - name: tags
        type: relation
        relation:
          fact: tags
          kind: has_many
          foreign_key: figure_id
      - name: released_on
        type: time

    dimension_filters:
      - name: active
      - name: cheaper_than
      - name: kind_eq
        kind: search
      - name: tags_name_in
        kind: search

    aggregate_expressions:
      kind_is_card: "CASE WHEN figures.kind = 'amiibo card' THEN 1 END"
      return_20_when_card: "CASE WHEN figures.kind = 'amiibo card' THEN 20 ELSE 0 END"

    scopes:
      active: "figures.active"
      cheaper_than: "figures.price < :value"

  - name: series
    dimension_labels: [name, title]

  - name: tags

metrics:
  - name: figure_count
    description: "Figures per kind"
    fact: figures
    dimensions: [kind]

  - name: card_count
    fact: figures
    aggregate:
      count: kind_is_card

  - name: card_points
    fact: figures
    aggregate: sum
    aggregate_expression: return_20_when_card

  - name: total_price
    description: "Stock value per kind"
    fact: figures
    aggregate: sum
    dimensions: [kind]

  - name: cards_by_kind
    fact: figures
    aggregate:
      count: kind_is_card
    dimensions: [kind]

  - name: card_points_by_kind
    fact: figures
    aggregate:
      sum: return_20_when_card
    dimensions: [kind]

  - name: max_price
    fact: figures
    aggregate: max

  - name: avg_price
    fact: figures
    aggregate: avg
    dimensions: [kind]

  - name: active_figure_count
    fact: figures
    dimensions: [kind]
    dimension_filter:
      active: true

  - name: cheap_figure_count
    fact: figures
    dimensions: [kind]
    dimension_filter:
      cheaper_than: 15

  - name: figures_by_series
    fact: figures
    dimensions: [series]

  - name: big_groups
    fact: figures
    dimensions: [kind]
    metric_filter:
      gte: 3
"""


@pytest.fixture
def models_dir(tmp_path: Path, sample_models_yaml: str) -> Path:
    """Create a temporary models directory with sample YAML."""
    models_path = tmp_path / "models"
    models_path.mkdir()
    (models_path / "figures.yaml").write_text(sample_models_yaml)
    return models_path


@pytest.fixture
def sample_series_data() -> list[tuple]:
    return [
        (1, "Super Mario", "SM"),
        (2, "Zelda", "LoZ"),
    ]


@pytest.fixture
def sample_figures_data() -> list[tuple]:
    """figure: 3 (price 50), yarn: 2 (price 30), amiibo card: 3 (price 15)."""
    return [
        (1, "Mario", "figure", 15, 1, True, "2018-09-29 14:37:12"),
        (2, "Luigi", "figure", 15, 1, True, "2018-06-03 10:00:00"),
        (3, "Peach", "yarn", 20, 1, False, "2017-11-10 09:00:00"),
        (4, "Mario card", "amiibo card", 5, 1, True, "2018-09-29 08:00:00"),
        (5, "Link", "figure", 20, 2, True, "2017-03-03 12:00:00"),
        (6, "Zelda", "yarn", 10, 2, True, "2018-06-03 18:30:00"),
        (7, "Link card", "amiibo card", 5, 2, True, "2017-03-03 12:00:00"),
        (8, "Zelda card", "amiibo card", 5, 2, False, "2018-01-15 16:45:00"),
    ]


@pytest.fixture
def sample_tags_data() -> list[tuple]:
    """Mario and Peach carry two tags each."""
    return [
        (1, 1, "classic"),
        (2, 1, "jumping"),
        (3, 2, "classic"),
        (4, 3, "classic"),
        (5, 5, "sword"),
        (6, 6, "classic"),
        (7, 3, "soft"),
    ]


def create_tables(
    backend: DuckDBBackend,
    series: list[tuple],
    figures: list[tuple],
    tags: list[tuple],
) -> None:
    backend.conn.execute("CREATE TABLE series (id INTEGER, name VARCHAR, title VARCHAR)")
    backend.conn.execute("""
        CREATE TABLE figures (
            id INTEGER,
            name VARCHAR,
            kind VARCHAR,
            price INTEGER,
            series_id INTEGER,
            active BOOLEAN,
            released_on TIMESTAMP
        )
    """)
    backend.conn.execute("CREATE TABLE tags (id INTEGER, figure_id INTEGER, name VARCHAR)")

    backend.conn.executemany("INSERT INTO series VALUES (?, ?, ?)", series)
    backend.conn.executemany("INSERT INTO figures VALUES (?, ?, ?, ?, ?, ?, ?)", figures)
    backend.conn.executemany("INSERT INTO tags VALUES (?, ?, ?)", tags)


@pytest.fixture
def db_with_data(
    sample_series_data: list[tuple],
    sample_figures_data: list[tuple],
    sample_tags_data: list[tuple],
) -> Generator[DuckDBBackend, None, None]:
    """Create an in-memory DuckDB backend with sample data."""
    backend = DuckDBBackend()
    create_tables(backend, sample_series_data, sample_figures_data, sample_tags_data)
    yield backend
    backend.close()


@pytest.fixture
def builder(models_dir: Path) -> RegistryBuilder:
    """A builder with the sample models loaded, not built yet."""
    return RegistryBuilder(dialect="DuckDB").load_directory(models_dir)


@pytest.fixture
def registry(builder: RegistryBuilder) -> SchemaRegistry:
    """Create a built SchemaRegistry."""
    return builder.build()


@pytest.fixture
def store_with_data(
    models_dir: Path,
    sample_series_data: list[tuple],
    sample_figures_data: list[tuple],
    sample_tags_data: list[tuple],
) -> Generator[ReportStore, None, None]:
    """Create a ReportStore with loaded data."""
    store = ReportStore(models_dir)
    create_tables(store.backend, sample_series_data, sample_figures_data, sample_tags_data)
    yield store
    store.close()


class RecordingBackend(Backend):
    """Wraps another backend and remembers every statement it runs."""

    def __init__(self, inner: Backend, dialect_name: str | None = None) -> None:
        self.inner = inner
        self._dialect_name = dialect_name or inner.dialect_name
        self.statements: list[str] = []

    @property
    def dialect_name(self) -> str:
        return self._dialect_name

    @property
    def sqlglot_dialect(self) -> str:
        return self.inner.sqlglot_dialect

    def execute(self, sql: str) -> QueryResult:
        self.statements.append(sql)
        return self.inner.execute(sql)


@pytest.fixture
def recording_backend(db_with_data: DuckDBBackend) -> RecordingBackend:
    return RecordingBackend(db_with_data)


@pytest.fixture
def sqlite_backend(db_with_data: DuckDBBackend) -> RecordingBackend:
    """A backend claiming a dialect without function adapters."""
    return RecordingBackend(db_with_data, dialect_name="SQLite")


@pytest.fixture
def db_file(
    tmp_path: Path,
    sample_series_data: list[tuple],
    sample_figures_data: list[tuple],
    sample_tags_data: list[tuple],
) -> str:
    """A DuckDB file with sample data, for the CLI."""
    path = str(tmp_path / "figures.duckdb")
    backend = DuckDBBackend(path)
    create_tables(backend, sample_series_data, sample_figures_data, sample_tags_data)
    backend.close()
    return path
