"""Basic usage example for ReportForge."""

import sys
from pathlib import Path

# repo root, for the sample data generator
sys.path.insert(0, str(Path(__file__).parent.parent))

from data.generate_sample_data import generate_sample_data  # noqa: E402
from reportforge import RegistryBuilder, Report, ReportStore  # noqa: E402
from reportforge.executor.duckdb_executor import DuckDBBackend  # noqa: E402

MODELS_DIR = Path(__file__).parent / "models"


def main():
    """Demonstrate ReportForge capabilities."""
    backend = DuckDBBackend()
    generate_sample_data(conn=backend.conn)

    # python-declared filter on top of the yaml declarations
    builder = RegistryBuilder(dialect=backend.dialect_name).load_directory(MODELS_DIR)
    builder.dimension_filter(
        "figures",
        "named",
        lambda scope, value: scope.where(f"figures.name LIKE {scope.literal(value + '%')}"),
    )
    store = ReportStore(backend=backend, registry=builder.build())

    print("=" * 60)
    print("ReportForge Figure Shop Demo")
    print("=" * 60)

    # 1. Simple count by kind
    print("\n1. Figures per kind:")
    for row in store.query("figure_count").data:
        print(f"   {row['kind']}: {row['figure_count']}")

    # 2. Aggregate expression
    print("\n2. Amiibo cards:")
    print(f"   {store.report('card_count').run()[0]['card_count']} cards")
    print(f"   {store.report('card_points').run()[0]['card_points']} loyalty points")

    # 3. Sum stays correct when a has-many filter joins tags
    print("\n3. Stock value of classic or limited figures:")
    result = store.query("stock_value", dimension_filter={"tags_name_in": ["classic", "limited"]})
    for row in result.data:
        print(f"   {row['kind']}: ${row['stock_value']:,.2f}")

    # 4. Quarters, labelled Q1..Q4
    print("\n4. Active figures (kind figure) per release quarter:")
    result = store.query(
        "figure_count",
        dimensions=[{"released_on": "quarter"}],
        dimension_filter={"active": True, "kind_eq": "figure"},
        order_by_dimension={"released_on": "asc"},
    )
    for row in result.data[:8]:
        print(f"   {row['released_on']}: {row['figure_count']}")

    # 5. Related fact as a dimension, with having
    print("\n5. Popular series:")
    for row in store.query("popular_series").data:
        print(f"   {row['series']} (id {row['series_identifier']}): {row['popular_series']}")

    # 6. Python filter
    print("\n6. Yarn figures by name prefix:")
    report = Report(store.registry.get_metric("figure_count"), backend, dimension_filter={"named": "Yarn"})
    for row in report.run():
        print(f"   {row['kind']}: {row['figure_count']}")

    # 7. Show generated SQL
    print("\n7. Generated SQL for stock value:")
    print(store.get_sql("stock_value", dimension_filter={"tags_name_in": ["classic"]}))

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)

    store.close()


if __name__ == "__main__":
    main()
