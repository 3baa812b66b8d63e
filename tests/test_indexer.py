import pandas as pd
import pytest

from pivotstudio.fields import categorize_fields, field_statistics
from pivotstudio.indexer import iter_records, materialize_input
from pivotstudio.values import MISSING


def test_iter_records_accepts_header_rows_frames_and_mappings():
    rows = [["a", "b"], [1, 2], [3, 4]]
    assert list(iter_records(rows)) == [{"a": 1, "b": 2}, {"a": 3, "b": 4}]

    frame = pd.DataFrame({"a": [1], "b": ["x"]})
    assert list(iter_records(frame)) == [{"a": 1, "b": "x"}]

    mixed = [{"a": 1}, "not a record", {"b": 2}]
    assert list(iter_records(mixed)) == [{"a": 1}, {"b": 2}]

    assert list(iter_records(None)) == []
    assert list(iter_records(iter([{"a": 1}]))) == [{"a": 1}]


def test_materialize_does_not_mutate_input():
    source = [{"a": 1}]
    materialized = materialize_input(source, {"double": lambda record: record["a"] * 2})
    assert source == [{"a": 1}]
    assert materialized.records[0] == {"a": 1, "double": 2}


def test_index_counts_values_per_attribute(sales_records):
    index = materialize_input(sales_records).index
    assert index.counts("region") == {"North": 2, "South": 2, "East": 2}
    assert index.distinct_count("product") == 3
    assert "region" in index
    assert index.unknown_attributes(["region", "colour"]) == ["colour"]


def test_missing_attribute_counts_cover_earlier_and_absent_records():
    records = [{"a": 1}, {"a": 2}, {"a": 3, "b": "x"}, {"a": 4}]
    index = materialize_input(records).index
    assert index.counts("b") == {MISSING: 3, "x": 1}
    assert sum(index.counts("b").values()) == len(records)


def test_null_and_nan_share_the_missing_bucket():
    records = [{"a": None}, {"a": float("nan")}, {"a": "null"}]
    index = materialize_input(records).index
    assert index.counts("a") == {MISSING: 2, "null": 1}


def test_sorted_values_use_natural_sort():
    records = [{"a": "item 10"}, {"a": "item 2"}, {}]
    index = materialize_input(records).index
    assert index.sorted_values("a") == [MISSING, "item 2", "item 10"]


def test_derived_attribute_failures_become_missing(caplog):
    def explode(record):
        if record["n"] == 2:
            raise ZeroDivisionError("boom")
        return 10 // record["n"]

    records = [{"n": 1}, {"n": 2}, {"n": 5}]
    with caplog.at_level("WARNING", logger="pivotstudio.indexer"):
        materialized = materialize_input(records, {"tenth": explode})

    assert [record["tenth"] for record in materialized.records] == [10, MISSING, 2]
    assert materialized.derived_failures == 1
    assert materialized.index.counts("tenth") == {10: 1, MISSING: 1, 2: 1}
    assert "derived attribute evaluations failed" in caplog.text


def test_derived_attribute_non_scalar_and_none_results():
    materialized = materialize_input(
        [{"a": 1}],
        {"listy": lambda record: [record["a"]], "empty": lambda record: None},
    )
    record = materialized.records[0]
    assert record["listy"] is MISSING
    assert record["empty"] is MISSING
    assert materialized.derived_failures == 1


def test_index_is_read_only(sales_records):
    index = materialize_input(sales_records).index
    with pytest.raises(TypeError):
        index.values["region"]["North"] = 10


def test_categorize_fields_splits_by_cardinality():
    records = [{"id": str(i), "kind": "odd" if i % 2 else "even", "flag": "y"} for i in range(6)]
    index = materialize_input(records).index
    categories = categorize_fields(index, threshold=3)
    assert categories.header_fields == ["flag", "kind"]
    assert categories.aggregation_fields == ["id"]
    assert categories.field_stats["id"] == 6

    stats = field_statistics(index, threshold=3)
    assert [stat.field for stat in stats] == ["flag", "kind", "id"]
    assert stats[-1].suitable_for == "aggregation"
    assert stats[0].suitable_for == "header"


def test_frame_nulls_come_through_as_missing():
    frame = pd.DataFrame({"d": pd.to_datetime(["2024-01-01", None]), "n": [1.5, None]})
    records = list(iter_records(frame))
    assert records[1] == {"d": None, "n": None}

    index = materialize_input(frame).index
    assert index.counts("d")[MISSING] == 1
    assert index.counts("n")[MISSING] == 1
