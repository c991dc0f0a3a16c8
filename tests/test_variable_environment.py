"""Tests for the variable environment."""
from services.variable_environment import VariableEnvironment, LAST_RESPONSE_KEY


def test_get_set_and_snapshot():
    """Test values are stored and snapshots are copies."""
    variables = VariableEnvironment()
    variables.set("name", "Ada")
    variables.set(LAST_RESPONSE_KEY, "yes")

    snapshot = variables.snapshot()
    snapshot["name"] = "changed"

    assert variables.get("name") == "Ada"
    assert variables.get("missing") is None
    assert variables.get("missing", "fallback") == "fallback"
    assert "name" in variables
    assert len(variables) == 2


def test_instances_do_not_share_values():
    """Test two environments are independent."""
    first = VariableEnvironment({"a": 1})
    second = VariableEnvironment()
    first.set("b", 2)

    assert "a" not in second
    assert len(second) == 0
