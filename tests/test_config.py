import pytest
import yaml

from pivotstudio.aggregators import AggregatorSpec
from pivotstudio.config import PivotConfig, load_config, parse_aggregator, parse_config
from pivotstudio.ordering import SortOrder


def test_load_sample_config(sample_config):
    config = load_config(sample_config)

    assert config.data.path == (sample_config.parent / "../sample_data/sales.csv").resolve()
    assert config.data.numeric_columns == ["units", "amount"]
    assert config.pivot.rows == ["region"]
    assert config.pivot.cols == ["quarter"]
    assert config.pivot.aggregators == [AggregatorSpec("Sum", ("amount",)), AggregatorSpec("Count")]
    assert config.pivot.value_filter == {"product": ["Gizmo"]}
    assert config.pivot.sort_as == {"region": ["North", "South", "East", "West"]}
    assert config.pivot.row_order is SortOrder.KEY_A_TO_Z
    assert [entry.name for entry in config.derived] == ["month", "units_bucket"]
    assert set(config.derived_attributes()) == {"month", "units_bucket"}
    assert config.output.table_format == "github"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_config_root_must_be_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_empty_config_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    config = load_config(path)
    assert config.data.path is None
    assert config.pivot.rows == []
    assert config.pivot.aggregators == []
    assert config.output.totals is True


def test_relative_data_path_resolves_against_config_dir(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    path.parent.mkdir()
    path.write_text(yaml.safe_dump({"data": {"path": "records.csv"}}), encoding="utf-8")
    config = load_config(path)
    assert config.data.path == (path.parent / "records.csv").resolve()


def test_null_in_value_filter_means_missing():
    config = parse_config({"pivot": {"value_filter": {"region": None, "year": [2020, None]}}})
    assert config.pivot.value_filter == {"region": [None], "year": [2020, None]}


def test_comma_separated_attribute_lists():
    config = parse_config({"pivot": {"rows": "region, product", "cols": ["year"]}})
    assert config.pivot.rows == ["region", "product"]
    assert config.pivot.cols == ["year"]


@pytest.mark.parametrize(
    "entry, expected",
    [
        ("Count", AggregatorSpec("Count")),
        ("Sum:amount", AggregatorSpec("Sum", ("amount",))),
        ("Sum over Sum: a , b", AggregatorSpec("Sum over Sum", ("a", "b"))),
        ({"name": "Sum", "vals": ["amount"]}, AggregatorSpec("Sum", ("amount",))),
        ({"name": "Sum", "vals": "amount"}, AggregatorSpec("Sum", ("amount",))),
    ],
)
def test_parse_aggregator_forms(entry, expected):
    assert parse_aggregator(entry) == expected


@pytest.mark.parametrize("entry", ["", ":amount", {"vals": ["amount"]}, 42])
def test_parse_aggregator_rejects_malformed(entry):
    with pytest.raises(ValueError):
        parse_aggregator(entry)


def test_unknown_sort_order_is_rejected():
    with pytest.raises(ValueError):
        parse_config({"pivot": {"row_order": "sideways"}})


def test_pivot_config_coerces_orders_and_names():
    pivot = PivotConfig(aggregators=["Count"], row_order="value_z_to_a")
    assert pivot.aggregators == [AggregatorSpec("Count")]
    assert pivot.row_order is SortOrder.VALUE_Z_TO_A


@pytest.mark.parametrize(
    "derived",
    [
        {"x": {"type": "histogram", "attribute": "a"}},
        {"x": {"type": "bin"}},
        {"x": "bin"},
    ],
)
def test_malformed_derived_entries(derived):
    with pytest.raises(ValueError):
        parse_config({"derived": derived})


def test_bin_without_width_fails_when_built():
    config = parse_config({"derived": {"x": {"type": "bin", "attribute": "a"}}})
    with pytest.raises(ValueError):
        config.derived_attributes()


def test_sections_must_be_mappings():
    with pytest.raises(ValueError):
        parse_config({"pivot": ["rows"]})
    with pytest.raises(ValueError):
        parse_config({"pivot": {"rows": 5}})


def test_output_section():
    config = parse_config({"output": {"table_format": "grid", "totals": False}})
    assert config.output.table_format == "grid"
    assert config.output.totals is False
    assert config.output.formatted is True
