"""Configuration file format for ReportForge.

saved as reportforge.yaml next to the models directory:

    models_dir: ./models
    database: data/figures.duckdb
    default_measure: value
    default_dimension_label: name
    search_fallback: false
    dimension_identifiers: true
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

CONFIG_FILENAME = "reportforge.yaml"


class ReportingConfig(BaseModel):
    """Settings shared by every fact and report."""

    models_dir: str = Field(default="./models", description="Directory with fact/metric YAML")
    database: str | None = Field(default=None, description="DuckDB file, in-memory if unset")
    dialect: str = Field(default="DuckDB", description="Dialect name used to pick function adapters")
    default_measure: str = Field(default="value", description="Measure column for facts without one")
    default_dimension_label: str = Field(
        default="name", description="Label column when a fact is used as a dimension"
    )
    search_fallback: bool = Field(
        default=False, description="Treat undeclared filters as search terms on every fact"
    )
    dimension_identifiers: bool = Field(
        default=True, description="Also select the id of related-fact dimensions"
    )
    pretty_sql: bool = Field(default=True, description="Format generated SQL with sqlglot")


def load_config(path: str | Path | None = None) -> ReportingConfig:
    """Load configuration from a YAML file.

    a missing default file is fine and gives the defaults, a missing file
    that was asked for explicitly is not.
    """
    if path is None:
        path = Path(CONFIG_FILENAME)
        if not path.exists():
            return ReportingConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return ReportingConfig.model_validate(data or {})
