import pytest
import yaml

from pivotstudio.cli import _parse_exclude, build_parser, main


def test_cli_prints_pivot_from_sample_config(sample_config, capsys):
    exit_code = main(["--config", str(sample_config)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Records: 6" in out
    assert "Sum" in out
    assert "Count" in out
    assert "North" in out
    assert "West" not in out


def test_cli_quiet_mode_prints_nothing(sample_config, capsys):
    assert main(["--config", str(sample_config), "--quiet"]) == 0
    assert capsys.readouterr().out == ""


def test_cli_overrides_layout_and_filters(sample_config, capsys):
    exit_code = main(
        [
            "--config",
            str(sample_config),
            "--rows",
            "product",
            "--cols",
            "",
            "--aggregator",
            "Sum:amount",
            "--exclude",
            "region=North",
            "--row-order",
            "value_z_to_a",
            "--table-format",
            "plain",
        ]
    )

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Records: 3" in out
    assert "2,375.25" in out
    assert "610.40" in out
    assert "2,985.65" in out
    assert out.index("Widget") < out.index("Gadget")
    assert "↑" in out


def test_cli_drops_unknown_aggregators(sample_config, capsys, caplog):
    with caplog.at_level("WARNING", logger="pivotstudio.cli"):
        exit_code = main(["--config", str(sample_config), "--aggregator", "Mode"])

    assert exit_code == 0
    assert "Unknown aggregator 'Mode' ignored" in caplog.text
    assert "falling back to 'Count'" in caplog.text
    assert "Count" in capsys.readouterr().out


def test_cli_data_override(tmp_path, capsys):
    data_path = tmp_path / "records.csv"
    data_path.write_text("kind,qty\na,1\nb,2\na,3\n", encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump({"pivot": {"rows": ["kind"], "aggregators": ["Sum:qty"]}}),
        encoding="utf-8",
    )

    exit_code = main(["--config", str(config_path), "--data", str(data_path)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "4.00" in out
    assert "6.00" in out


def test_cli_requires_a_dataset(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("pivot:\n  rows: [a]\n", encoding="utf-8")
    assert main(["--config", str(config_path)]) == 1


def test_cli_reports_missing_files(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 1

    config_path = tmp_path / "config.yaml"
    config_path.write_text("data:\n  path: nowhere.csv\n", encoding="utf-8")
    assert main(["--config", str(config_path)]) == 1


def test_cli_lists_aggregators(capsys):
    assert main(["--list-aggregators"]) == 0
    out = capsys.readouterr().out
    assert "Sum over Sum" in out
    assert "Count as Fraction of Columns" in out


def test_parse_exclude():
    assert _parse_exclude("region=North") == ("region", "North")
    assert _parse_exclude("region=") == ("region", None)
    assert _parse_exclude("note=a=b") == ("note", "a=b")


def test_parser_validates_orders():
    parser = build_parser()
    assert parser.parse_args(["--row-order", "value_a_to_z"]).row_order == "value_a_to_z"
    with pytest.raises(SystemExit):
        parser.parse_args(["--col-order", "sideways"])


def test_cli_excludes_values_of_numeric_columns(tmp_path, capsys):
    data_path = tmp_path / "records.csv"
    data_path.write_text("r,units\nA,10\nA,5\n", encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "data": {"path": str(data_path), "numeric_columns": ["units"]},
                "pivot": {"rows": ["r"], "aggregators": ["Sum:units"]},
            }
        ),
        encoding="utf-8",
    )

    exit_code = main(["--config", str(config_path), "--exclude", "units=10"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Records: 1" in out
    assert "5.00" in out
