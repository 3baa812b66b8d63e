import pytest

from pivotstudio.ordering import SortOrder, order_keys


def test_sort_order_cycle_and_symbols():
    order = SortOrder.KEY_A_TO_Z
    seen = []
    for _ in range(3):
        seen.append((order.row_symbol, order.col_symbol))
        order = order.next
    assert order is SortOrder.KEY_A_TO_Z
    assert seen == [("↕", "↔"), ("↓", "→"), ("↑", "←")]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("key_a_to_z", SortOrder.KEY_A_TO_Z),
        (" VALUE_A_TO_Z ", SortOrder.VALUE_A_TO_Z),
        (SortOrder.VALUE_Z_TO_A, SortOrder.VALUE_Z_TO_A),
    ],
)
def test_sort_order_parse(raw, expected):
    assert SortOrder.parse(raw) is expected


def test_sort_order_parse_rejects_unknown_values():
    with pytest.raises(ValueError) as excinfo:
        SortOrder.parse("random")
    assert "key_a_to_z" in str(excinfo.value)


def test_order_keys_by_key():
    keys = [("b",), ("a10",), ("a2",)]
    assert order_keys(keys, ["x"], SortOrder.KEY_A_TO_Z) == [("a2",), ("a10",), ("b",)]


def test_order_keys_by_value_breaks_ties_with_key_order():
    totals = {("a",): 5, ("b",): 1, ("c",): 5, ("d",): None}
    ascending = order_keys(totals, ["x"], SortOrder.VALUE_A_TO_Z, value_of=totals.get)
    descending = order_keys(totals, ["x"], SortOrder.VALUE_Z_TO_A, value_of=totals.get)
    assert ascending == [("d",), ("b",), ("a",), ("c",)]
    assert descending == [("a",), ("c",), ("b",), ("d",)]


def test_order_keys_respects_sorters():
    keys = [("low",), ("high",), ("medium",)]
    ordered = order_keys(keys, ["level"], "key_a_to_z", {"level": ["low", "medium", "high"]})
    assert ordered == [("low",), ("medium",), ("high",)]
