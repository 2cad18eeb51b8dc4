"""Tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from reportforge.cli.main import app

runner = CliRunner()


class TestCLIList:
    def test_list_metrics(self, models_dir: Path):
        """Can list metrics via CLI."""
        result = runner.invoke(app, ["list", "metrics", "--dir", str(models_dir)])
        assert result.exit_code == 0
        assert "figure_count" in result.stdout

    def test_list_facts(self, models_dir: Path):
        result = runner.invoke(app, ["list", "facts", "--dir", str(models_dir)])
        assert result.exit_code == 0
        assert "figures" in result.stdout

    def test_list_dimensions(self, models_dir: Path):
        """Can list dimensions via CLI."""
        result = runner.invoke(app, ["list", "dimensions", "--dir", str(models_dir)])
        assert result.exit_code == 0
        assert "released_on" in result.stdout

    def test_list_filters(self, models_dir: Path):
        result = runner.invoke(app, ["list", "filters", "--dir", str(models_dir)])
        assert result.exit_code == 0
        assert "cheaper_than" in result.stdout

    def test_list_invalid_type(self, models_dir: Path):
        """Reports error for invalid list type."""
        result = runner.invoke(app, ["list", "invalid", "--dir", str(models_dir)])
        assert result.exit_code == 1
        assert "unknown type" in result.stdout.lower()

    def test_list_nonexistent_directory(self, tmp_path: Path):
        """Reports error for nonexistent directory."""
        result = runner.invoke(app, ["list", "metrics", "--dir", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "error" in result.stdout.lower()


class TestCLIValidate:
    def test_validate_success(self, models_dir: Path):
        """Validate passes for valid declarations."""
        result = runner.invoke(app, ["validate", "--dir", str(models_dir)])
        assert result.exit_code == 0
        assert "success" in result.stdout.lower()

    def test_validate_broken_declarations(self, tmp_path: Path):
        (tmp_path / "broken.yaml").write_text(
            "facts:\n  - name: figures\nmetrics:\n  - name: bad\n    fact: figures\n    aggregate: median\n"
        )
        result = runner.invoke(app, ["validate", "--dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "median" in result.stdout

    def test_validate_nonexistent_directory(self, tmp_path: Path):
        """Validate fails for nonexistent directory."""
        result = runner.invoke(app, ["validate", "--dir", str(tmp_path / "nope")])
        assert result.exit_code == 1


class TestCLIShowSQL:
    def test_show_sql(self, models_dir: Path):
        """Can show SQL for a metric."""
        result = runner.invoke(app, ["show-sql", "figure_count", "--dir", str(models_dir)])
        assert result.exit_code == 0
        assert "SELECT" in result.stdout.upper()

    def test_show_sql_with_time_dimension(self, models_dir: Path):
        result = runner.invoke(
            app,
            ["show-sql", "figure_count", "--dir", str(models_dir), "-g", "released_on:month"],
        )
        assert result.exit_code == 0
        assert "DATE_TRUNC" in result.stdout.upper()

    def test_show_sql_with_filter(self, models_dir: Path):
        result = runner.invoke(
            app,
            ["show-sql", "figure_count", "--dir", str(models_dir), "-f", "cheaper_than=10"],
        )
        assert result.exit_code == 0
        assert "figures.price < 10" in result.stdout

    def test_show_sql_unknown_metric(self, models_dir: Path):
        """Reports error for unknown metric."""
        result = runner.invoke(app, ["show-sql", "nonexistent", "--dir", str(models_dir)])
        assert result.exit_code == 1
        assert "error" in result.stdout.lower()


class TestCLIQuery:
    def test_query_json(self, models_dir: Path, db_file: str):
        result = runner.invoke(
            app,
            ["query", "figure_count", "--dir", str(models_dir), "--db", db_file, "-o", "json"],
        )
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert {row["kind"]: row["figure_count"] for row in rows} == {
            "figure": 3,
            "yarn": 2,
            "amiibo card": 3,
        }

    def test_query_with_overrides(self, models_dir: Path, db_file: str):
        result = runner.invoke(
            app,
            [
                "query",
                "figure_count",
                "--dir",
                str(models_dir),
                "--db",
                db_file,
                "-f",
                "tags_name_in=[classic, jumping]",
                "--having",
                "gte=2",
                "--order",
                "kind=desc",
                "-o",
                "csv",
            ],
        )
        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0] == "figure_count,kind"
        assert lines[1:] == ["2,yarn", "2,figure"]

    def test_query_without_identifiers(self, models_dir: Path, db_file: str):
        result = runner.invoke(
            app,
            [
                "query",
                "figures_by_series",
                "--dir",
                str(models_dir),
                "--db",
                db_file,
                "--no-identifiers",
                "-o",
                "csv",
            ],
        )
        assert result.exit_code == 0
        assert "series_identifier" not in result.stdout

    def test_query_unknown_filter(self, models_dir: Path, db_file: str):
        result = runner.invoke(
            app,
            ["query", "figure_count", "--dir", str(models_dir), "--db", db_file, "-f", "nope=1"],
        )
        assert result.exit_code == 1
        assert "unknown dimension filter" in result.stdout.lower()

    def test_query_bad_filter_syntax(self, models_dir: Path, db_file: str):
        result = runner.invoke(
            app,
            ["query", "figure_count", "--dir", str(models_dir), "--db", db_file, "-f", "nope"],
        )
        assert result.exit_code != 0

    def test_query_with_show_sql(self, models_dir: Path, db_file: str):
        """Can show SQL with query."""
        result = runner.invoke(
            app, ["query", "figure_count", "--dir", str(models_dir), "--db", db_file, "--sql"]
        )
        assert result.exit_code == 0
        assert "SELECT" in result.stdout.upper()

    def test_query_missing_tables(self, models_dir: Path):
        """Query fails gracefully on an empty database."""
        result = runner.invoke(app, ["query", "figure_count", "--dir", str(models_dir)])
        assert result.exit_code == 1
        assert "query error" in result.stdout.lower()


class TestCLIHelp:
    def test_main_help(self):
        """Main help works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "reportforge" in result.stdout.lower()

    def test_query_help(self):
        """Query command help works."""
        result = runner.invoke(app, ["query", "--help"])
        assert result.exit_code == 0

    def test_show_sql_help(self):
        """Show-sql command help works."""
        result = runner.invoke(app, ["show-sql", "--help"])
        assert result.exit_code == 0
