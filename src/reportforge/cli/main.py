"""CLI for ReportForge."""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from reportforge.models.config import load_config
from reportforge.models.metric import DimensionRef
from reportforge.store import ReportStore

app = typer.Typer(
    name="rf",
    help="ReportForge - star-schema report compiler",
    no_args_is_help=True,
)
console = Console()

ModelsDir = Annotated[
    Path | None, typer.Option("--dir", "-d", help="Models directory (defaults to config)")
]
ConfigPath = Annotated[Path | None, typer.Option("--config", "-c", help="reportforge.yaml path")]
Dimensions = Annotated[
    list[str] | None,
    typer.Option("--dimension", "-g", help="Dimension, 'name' or 'name:label' (repeatable)"),
]
Filters = Annotated[
    list[str] | None, typer.Option("--filter", "-f", help="Dimension filter key=value (repeatable)")
]
Having = Annotated[
    list[str] | None, typer.Option("--having", help="Metric filter op=value, e.g. gte=5")
]
Ordering = Annotated[
    list[str] | None, typer.Option("--order", help="Ordering dimension=asc|desc")
]
NoIdentifiers = Annotated[
    bool, typer.Option("--no-identifiers", help="Don't select ids of related-fact dimensions")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log compiled SQL")] = False,
) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def get_store(
    metrics_dir: Path | None, config_path: Path | None = None, db_path: str | None = None
) -> ReportStore:
    config = load_config(config_path)
    models_dir = metrics_dir or Path(config.models_dir)
    return ReportStore(models_dir, db_path, config=config)


def _parse_value(raw: str) -> Any:
    # "5" -> 5, "[a, b]" -> ["a", "b"], "true" stays a string switch
    if raw == "true":
        return raw
    return yaml.safe_load(raw)


def _parse_pairs(items: list[str] | None, what: str) -> dict[str, Any]:
    pairs: dict[str, Any] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"{what} must look like key=value, got '{item}'")
        pairs[key.strip()] = _parse_value(value.strip())
    return pairs


def _parse_dimensions(items: list[str] | None) -> list[DimensionRef]:
    dims: list[DimensionRef] = []
    for item in items or []:
        name, sep, label = item.partition(":")
        dims.append({name.strip(): label.strip()} if sep else name.strip())
    return dims


@app.command("list")
def list_items(
    item_type: Annotated[str, typer.Argument(help="Type: facts, metrics, dimensions or filters")],
    metrics_dir: ModelsDir = None,
    config_path: ConfigPath = None,
) -> None:
    """List facts, metrics, dimensions or dimension filters."""
    try:
        store = get_store(metrics_dir, config_path)
    except Exception as e:
        console.print(f"[red]Error loading models: {e}[/red]")
        raise typer.Exit(1)

    listings = {
        "facts": (store.list_facts, ["name", "table", "measure", "description"]),
        "metrics": (store.list_metrics, ["name", "fact", "aggregate", "description"]),
        "dimensions": (store.list_dimensions, ["name", "type", "fact", "description"]),
        "filters": (store.list_filters, ["name", "kind", "fact"]),
    }
    if item_type not in listings:
        console.print(
            f"[red]Unknown type: {item_type}. Use: {', '.join(listings)}[/red]"
        )
        raise typer.Exit(1)

    lister, columns = listings[item_type]
    _print_listing(item_type, lister(), columns)


def _print_listing(title: str, items: list[dict], columns: list[str]) -> None:
    if not items:
        console.print(f"[yellow]No {title} defined[/yellow]")
        return

    table = Table(title=title.capitalize())
    styles = ["cyan", "green", "yellow", None]
    for column, style in zip(columns, styles):
        table.add_column(column.capitalize(), style=style)

    for item in items:
        table.add_row(*[str(item[c]) if item[c] is not None else "-" for c in columns])

    console.print(table)


@app.command()
def query(
    metric: Annotated[str, typer.Argument(help="Metric name")],
    metrics_dir: ModelsDir = None,
    config_path: ConfigPath = None,
    db_path: Annotated[str | None, typer.Option("--db", help="DuckDB database path")] = None,
    dimensions: Dimensions = None,
    filters: Filters = None,
    having: Having = None,
    order: Ordering = None,
    no_identifiers: NoIdentifiers = False,
    show_sql: Annotated[bool, typer.Option("--sql", "-s", help="Show generated SQL")] = False,
    output: Annotated[
        str, typer.Option("--output", "-o", help="Output format: table, json, csv")
    ] = "table",
) -> None:
    """Run a metric with optional extra dimensions and filters."""
    try:
        store = get_store(metrics_dir, config_path, db_path)
    except Exception as e:
        console.print(f"[red]Error loading models: {e}[/red]")
        raise typer.Exit(1)

    try:
        report = store.report(
            metric,
            dimensions=_parse_dimensions(dimensions),
            dimension_filter=_parse_pairs(filters, "Filter"),
            metric_filter=_parse_pairs(having, "Having"),
            order_by_dimension=_parse_pairs(order, "Order"),
            dimension_identifiers=False if no_identifiers else None,
        )
        if show_sql:
            console.print(Syntax(report.compile(), "sql", theme="monokai", line_numbers=True))
            console.print()
        result = report.result
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Query error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    _output_result(result, output)


def _output_result(result, output_format: str) -> None:
    """Output query result in the specified format."""
    if output_format == "json":
        console.print(json.dumps(result.data, indent=2, default=str))
    elif output_format == "csv":
        if result.data:
            console.print(",".join(result.columns))
            for row in result.data:
                values = [str(row.get(c, "")) for c in result.columns]
                console.print(",".join(values))
    else:
        table = Table(
            title=f"Report Results ({result.row_count} rows, {result.execution_time_ms}ms)"
        )
        for col in result.columns:
            table.add_column(col)

        for row in result.data:
            values = [str(row.get(c, "")) for c in result.columns]
            table.add_row(*values)

        console.print(table)


@app.command()
def validate(
    metrics_dir: ModelsDir = None,
    config_path: ConfigPath = None,
) -> None:
    """Validate all fact and metric declarations."""
    try:
        store = get_store(metrics_dir, config_path)
    except Exception as e:
        console.print(f"[red]Error loading models: {e}[/red]")
        raise typer.Exit(1)

    errors = store.validate()

    if errors:
        console.print("[red]Validation failed:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        raise typer.Exit(1)

    console.print(
        f"[green]Validated {len(store.registry.metrics)} metrics and "
        f"{len(store.registry.facts)} facts successfully![/green]"
    )


@app.command("show-sql")
def show_sql(
    metric: Annotated[str, typer.Argument(help="Metric name")],
    metrics_dir: ModelsDir = None,
    config_path: ConfigPath = None,
    dimensions: Dimensions = None,
    filters: Filters = None,
    having: Having = None,
    order: Ordering = None,
    no_identifiers: NoIdentifiers = False,
) -> None:
    """Show generated SQL without executing."""
    try:
        store = get_store(metrics_dir, config_path)
    except Exception as e:
        console.print(f"[red]Error loading models: {e}[/red]")
        raise typer.Exit(1)

    try:
        sql = store.get_sql(
            metric,
            dimensions=_parse_dimensions(dimensions),
            dimension_filter=_parse_pairs(filters, "Filter"),
            metric_filter=_parse_pairs(having, "Having"),
            order_by_dimension=_parse_pairs(order, "Order"),
            dimension_identifiers=False if no_identifiers else None,
        )
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error generating SQL: {e}[/red]")
        raise typer.Exit(1)

    console.print(Syntax(sql, "sql", theme="monokai", line_numbers=True))


if __name__ == "__main__":
    app()
