"""Tests for running reports end to end on DuckDB."""

import re
import string

import pytest

from reportforge.compiler.report import Report
from reportforge.errors import (
    AmbiguousDimension,
    InvalidDimensionLabel,
    UnknownDimensionFilter,
    UnknownMetric,
)
from reportforge.executor.duckdb_executor import DuckDBBackend
from reportforge.parser.loader import RegistryBuilder, SchemaRegistry


def by_kind(rows: list[dict], metric: str) -> dict:
    return {row["kind"]: row[metric] for row in rows}


class TestCount:
    def test_count_by_kind(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("figure_count"), db_with_data).run()
        assert by_kind(rows, "figure_count") == {"figure": 3, "yarn": 2, "amiibo card": 3}

    def test_count_by_name(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        """Metric can be given by name when a registry is passed."""
        rows = Report("figure_count", db_with_data, registry=registry).run()
        assert sum(row["figure_count"] for row in rows) == 8

    def test_count_with_aggregate_expression(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        """Only rows where the expression isn't null are counted."""
        rows = Report(registry.get_metric("card_count"), db_with_data).run()
        assert rows == [{"card_count": 3}]

    def test_count_with_aggregate_expression_by_kind(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        """Groups without a matching row count zero."""
        rows = Report(registry.get_metric("cards_by_kind"), db_with_data).run()
        assert by_kind(rows, "cards_by_kind") == {"amiibo card": 3, "figure": 0, "yarn": 0}

    def test_count_with_expression_and_no_matches(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        rows = Report(
            registry.get_metric("card_count"), db_with_data, dimension_filter={"kind_eq": "yarn"}
        ).run()
        assert rows == [{"card_count": 0}]

    def test_count_without_function_adapter(self, models_dir, sqlite_backend):
        """Counting doesn't need date functions."""
        registry = RegistryBuilder(dialect="SQLite").load_directory(models_dir).build()
        rows = Report(registry.get_metric("figure_count"), sqlite_backend).run()
        assert by_kind(rows, "figure_count")["figure"] == 3


class TestSum:
    def test_sum_by_kind(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("total_price"), db_with_data).run()
        assert by_kind(rows, "total_price") == {"figure": 50, "yarn": 30, "amiibo card": 15}

    def test_sum_with_aggregate_expression(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("card_points"), db_with_data).run()
        assert rows == [{"card_points": 60}]

    def test_sum_with_aggregate_expression_by_kind(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        rows = Report(registry.get_metric("card_points_by_kind"), db_with_data).run()
        assert by_kind(rows, "card_points_by_kind") == {"amiibo card": 60, "figure": 0, "yarn": 0}

    def test_sum_not_inflated_by_has_many_join(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        """Mario has two matching tags but his price is only added once."""
        rows = Report(
            registry.get_metric("total_price"),
            db_with_data,
            dimension_filter={"tags_name_in": ["classic", "jumping"]},
        ).run()
        assert by_kind(rows, "total_price") == {"figure": 30, "yarn": 30}

    def test_count_not_inflated_by_has_many_join(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        rows = Report(
            registry.get_metric("figure_count"),
            db_with_data,
            dimension_filter={"tags_name_in": ["classic", "jumping"]},
        ).run()
        assert by_kind(rows, "figure_count") == {"figure": 2, "yarn": 2}

    def test_sum_with_having_and_order(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("total_price"),
            db_with_data,
            metric_filter={"gt": 20},
            order_by_dimension={"kind": "desc"},
        ).run()
        assert [row["kind"] for row in rows] == ["yarn", "figure"]

    def test_max(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("max_price"), db_with_data).run()
        assert rows == [{"max_price": 20}]


class TestAverage:
    def test_avg_by_kind(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("avg_price"), db_with_data).run()
        averages = by_kind(rows, "avg_price")
        assert averages == {"figure": pytest.approx(50 / 3), "yarn": 15, "amiibo card": 5}

    def test_avg_not_skewed_by_has_many_join(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        """Peach has two matching tags, her price still counts once."""
        rows = Report(
            registry.get_metric("avg_price"),
            db_with_data,
            dimension_filter={"tags_name_in": ["classic", "jumping", "soft"]},
        ).run()
        assert by_kind(rows, "avg_price") == {"figure": 15, "yarn": 15}


class TestDimensions:
    def test_relation_dimension_with_identifier(
        self, registry: SchemaRegistry, db_with_data: DuckDBBackend
    ):
        rows = Report(registry.get_metric("figures_by_series"), db_with_data).run()
        by_series = {row["series"]: row for row in rows}
        assert by_series["Super Mario"]["figures_by_series"] == 4
        assert by_series["Super Mario"]["series_identifier"] == 1
        assert by_series["Zelda"]["series_identifier"] == 2

    def test_without_identifiers(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        report = Report(
            registry.get_metric("figures_by_series"), db_with_data, dimension_identifiers=False
        )
        assert set(report.result.columns) == {"figures_by_series", "series"}

    def test_relation_label(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, dimensions=[{"series": "title"}]
        ).run()
        assert {row["series"] for row in rows} == {"SM", "LoZ"}

    def test_invalid_relation_label(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        with pytest.raises(InvalidDimensionLabel):
            Report(registry.get_metric("figure_count"), db_with_data, dimensions=[{"series": "price"}])

    def test_extra_dimension_appended(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        report = Report(registry.get_metric("figure_count"), db_with_data, dimensions=["series"])
        assert [d.name for d in report.dimensions] == ["kind", "series"]
        assert len(report.run()) == 6

    def test_repeated_dimension_merged(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        report = Report(registry.get_metric("figure_count"), db_with_data, dimensions=["kind"])
        assert [d.name for d in report.dimensions] == ["kind"]

    def test_conflicting_dimension(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        with pytest.raises(AmbiguousDimension):
            Report(
                registry.get_metric("figures_by_series"), db_with_data, dimensions=[{"series": "title"}]
            )

    def test_quarter_labels(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, dimensions=[{"released_on": "quarter"}]
        ).run()
        assert rows
        for row in rows:
            assert re.fullmatch(r"Q[1-4]", row["released_on"])

    def test_time_dimension_on_dialect_without_adapter(self, models_dir, sqlite_backend):
        registry = RegistryBuilder(dialect="SQLite").load_directory(models_dir).build()
        with pytest.raises(InvalidDimensionLabel):
            Report(
                registry.get_metric("figure_count"),
                sqlite_backend,
                dimensions=[{"released_on": "month"}],
            )

    def test_label_callback(self, db_with_data: DuckDBBackend):
        builder = RegistryBuilder()
        builder.add_fact(
            {
                "name": "figures",
                "dimensions": [{"name": "kind", "label_callback": "string.capwords"}],
            }
        )
        builder.add_metric({"name": "figure_count", "fact": "figures", "dimensions": ["kind"]})
        registry = builder.build()

        rows = Report(registry.get_metric("figure_count"), db_with_data).run()
        assert by_kind(rows, "figure_count")["Amiibo Card"] == 3
        assert registry.get_fact("figures").get_dimension("kind").label_callback is string.capwords


class TestDimensionFilters:
    def test_scope_switch(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("active_figure_count"), db_with_data).run()
        assert by_kind(rows, "active_figure_count") == {"figure": 3, "yarn": 1, "amiibo card": 2}

    def test_scope_with_argument(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("cheap_figure_count"), db_with_data).run()
        assert by_kind(rows, "cheap_figure_count") == {"yarn": 1, "amiibo card": 3}

    def test_invocation_value_wins(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("cheap_figure_count"),
            db_with_data,
            dimension_filter={"cheaper_than": 16},
        ).run()
        assert by_kind(rows, "cheap_figure_count") == {"figure": 2, "yarn": 1, "amiibo card": 3}

    def test_filters_combine(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("active_figure_count"),
            db_with_data,
            dimension_filter={"cheaper_than": 15, "kind_eq": "amiibo card"},
        ).run()
        assert by_kind(rows, "active_figure_count") == {"amiibo card": 2}

    def test_custom_filter(self, builder: RegistryBuilder, db_with_data: DuckDBBackend):
        def named(scope, value):
            return scope.where(f"figures.name = {scope.literal(value)}")

        builder.dimension_filter("figures", "named", named)
        registry = builder.build()
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, dimension_filter={"named": "Link"}
        ).run()
        assert rows == [{"figure_count": 1, "kind": "figure"}]

    def test_python_scope_switch_gets_none(self, builder: RegistryBuilder, db_with_data: DuckDBBackend):
        received = []

        def cards_only(scope, argument):
            received.append(argument)
            return scope.where("figures.kind = 'amiibo card'")

        builder.scope("figures", "cards_only", cards_only)
        builder.dimension_filter("figures", "cards_only")
        registry = builder.build()
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, dimension_filter={"cards_only": "true"}
        ).run()
        assert received == [None]
        assert by_kind(rows, "figure_count") == {"amiibo card": 3}

    def test_unknown_dimension_filter(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        with pytest.raises(UnknownDimensionFilter):
            Report(registry.get_metric("figure_count"), db_with_data, dimension_filter={"nope": 1})

    def test_search_fallback(self, builder: RegistryBuilder, db_with_data: DuckDBBackend):
        builder.use_search_for_unknown_dimension_filters("figures")
        registry = builder.build()
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, dimension_filter={"price_lt": 15}
        ).run()
        assert by_kind(rows, "figure_count") == {"yarn": 1, "amiibo card": 3}


class TestMetricFilter:
    def test_having(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("big_groups"), db_with_data).run()
        assert by_kind(rows, "big_groups") == {"figure": 3, "amiibo card": 3}

    def test_invocation_threshold_wins(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(registry.get_metric("big_groups"), db_with_data, metric_filter={"gte": 1}).run()
        assert len(rows) == 3

    def test_thresholds_anded(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, metric_filter={"gt": 1, "lt": 3}
        ).run()
        assert by_kind(rows, "figure_count") == {"yarn": 2}


class TestOrdering:
    def test_order_by_dimension(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, order_by_dimension={"kind": "desc"}
        ).run()
        assert [row["kind"] for row in rows] == ["yarn", "figure", "amiibo card"]

    def test_order_ascending(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        rows = Report(
            registry.get_metric("figure_count"), db_with_data, order_by_dimension={"kind": "ASC"}
        ).run()
        assert [row["kind"] for row in rows] == ["amiibo card", "figure", "yarn"]


class TestMemoization:
    def test_run_executes_once(self, registry: SchemaRegistry, recording_backend):
        report = Report(registry.get_metric("figure_count"), recording_backend)
        first = report.run()
        second = report.run()
        assert first is second
        assert len(recording_backend.statements) == 1

    def test_result_after_run(self, registry: SchemaRegistry, recording_backend):
        report = Report(registry.get_metric("figure_count"), recording_backend)
        report.run()
        assert report.result.sql == report.compile()
        assert len(recording_backend.statements) == 1

    def test_compile_does_not_execute(self, registry: SchemaRegistry, recording_backend):
        Report(registry.get_metric("figure_count"), recording_backend).compile()
        assert recording_backend.statements == []


class TestErrors:
    def test_unknown_metric(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        with pytest.raises(UnknownMetric):
            Report("nope", db_with_data, registry=registry)

    def test_name_without_registry(self, db_with_data: DuckDBBackend):
        with pytest.raises(UnknownMetric):
            Report("figure_count", db_with_data)

    def test_not_a_metric(self, db_with_data: DuckDBBackend):
        with pytest.raises(UnknownMetric):
            Report(42, db_with_data)

    def test_metric_report_shortcut(self, registry: SchemaRegistry, db_with_data: DuckDBBackend):
        report = registry.get_metric("figure_count").report(db_with_data, dimension_identifiers=False)
        assert isinstance(report, Report)
        assert report.dimension_identifiers is False
