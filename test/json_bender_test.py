import pytest

from azurerm_function_app.json_bender import Bend, BendingError, F, K, S, bend


def test_select() -> None:
    source = {"a": {"b": [1, 2]}}
    assert bend(S("a", "b", 1), source) == 2
    assert bend(S("a", "c"), source) is None
    assert bend(S("a", "c", default=3), source) == 3
    with pytest.raises(ValueError):
        S()


def test_or_else() -> None:
    assert bend(S("a").or_else(S("b")), {"a": 1, "b": 2}) == 1
    assert bend(S("a").or_else(S("b")), {"b": 2}) == 2
    assert bend(S("a").or_else(K({})), {}) == {}


def test_compose() -> None:
    assert bend(S("a") >> F(sorted), {"a": {"b": 1, "a": 2}}) == ["a", "b"]
    # a missing value is not passed to the next bender
    assert bend(S("a") >> F(sorted), {}) is None
    assert bend(K({"b": "2", "a": "1"}) >> F(sorted), None) == ["a", "b"]


def test_nested_bend() -> None:
    mapping = {"name": S("name"), "config": S("properties") >> Bend({"on": S("alwaysOn")})}
    assert bend(mapping, {"name": "n", "properties": {"alwaysOn": True}}) == {"name": "n", "config": {"on": True}}
    assert bend(mapping, {"name": "n"}) == {"name": "n", "config": None}


def test_bending_error() -> None:
    with pytest.raises(BendingError) as ex:
        bend({"x": S("a") >> F(int)}, {"a": "no number"})
    assert "Error for key x" in str(ex.value)
