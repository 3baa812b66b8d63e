import math
import pickle

import numpy as np
import pandas as pd
import pytest

from pivotstudio.values import (
    MISSING,
    display_value,
    encode_key,
    is_missing,
    is_scalar,
    normalize_value,
    parse_float,
)


def test_missing_is_a_falsy_singleton_that_displays_as_null():
    assert not MISSING
    assert str(MISSING) == "null"
    assert repr(MISSING) == "MISSING"
    assert pickle.loads(pickle.dumps(MISSING)) is MISSING


def test_literal_null_string_is_not_missing():
    assert not is_missing("null")
    assert normalize_value("null") == "null"
    assert normalize_value("null") is not MISSING


@pytest.mark.parametrize(
    "value", [None, MISSING, float("nan"), np.float64("nan"), pd.NaT, np.datetime64("NaT")]
)
def test_absent_values_normalize_to_missing(value):
    assert is_missing(value)
    assert normalize_value(value) is MISSING


def test_unhashable_values_group_by_text():
    assert normalize_value([1, 2]) == "[1, 2]"
    assert is_scalar("text")
    assert is_scalar(3.5)
    assert not is_scalar({"a": 1})


def test_encode_key_does_not_collide_on_separator_characters():
    assert encode_key(("a|b", "c")) != encode_key(("a", "b|c"))
    assert encode_key(("a", "")) != encode_key(("a",))
    assert encode_key(("", "a")) != encode_key(("a", ""))


def test_encode_key_keeps_types_and_missing_apart():
    assert encode_key((1,)) != encode_key(("1",))
    assert encode_key((True,)) != encode_key((1,))
    assert encode_key((MISSING,)) != encode_key(("null",))
    assert encode_key((None,)) == encode_key((MISSING,))
    assert encode_key(()) == ""


def test_display_value_renders_missing_and_dates():
    from datetime import date

    assert display_value(None) == "null"
    assert display_value(date(2024, 3, 1)) == "2024-03-01"
    assert display_value(12) == "12"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12", 12.0),
        ("  3.5kg", 3.5),
        ("-2e3", -2000.0),
        (".5", 0.5),
        (7, 7.0),
    ],
)
def test_parse_float_reads_leading_number(raw, expected):
    assert parse_float(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["abc", "", None, MISSING, True, float("nan"), ["1"]])
def test_parse_float_rejects_non_numbers(raw):
    assert parse_float(raw) is None


def test_parse_float_understands_infinity():
    assert parse_float("Infinity") == math.inf
    assert parse_float("-Infinity") == -math.inf


def test_whole_floats_display_and_group_like_integers():
    assert display_value(10.0) == "10"
    assert display_value(np.float64(2023)) == "2023"
    assert display_value(2.5) == "2.5"
    assert display_value(float("inf")) == "inf"
    assert encode_key((2023.0,)) == encode_key((2023,))
    assert encode_key((1.0,)) != encode_key((True,))
