"""Tests for the condition evaluator."""
import math
import pytest

from services.condition_evaluator import evaluate_condition, to_text, to_number, ConditionOperator


@pytest.mark.parametrize("actual, expected, result", [
    ("yes", "yes", True),
    ("yes", "no", False),
    (20, "20", True),
    (20.0, "20", True),
    (2.5, "2.5", True),
    (True, "true", True),
    (None, "", True),
    (None, "x", False),
])
def test_equals_compares_textual_rendering(actual, expected, result):
    """Test equals on the textual rendering of the variable."""
    assert evaluate_condition(actual, "equals", expected) is result


def test_contains():
    """Test contains is a substring check on the rendering."""
    assert evaluate_condition("hello world", "contains", "world") is True
    assert evaluate_condition("hello world", "contains", "moon") is False
    assert evaluate_condition(1234, "contains", "23") is True
    assert evaluate_condition(None, "contains", "a") is False


@pytest.mark.parametrize("actual, operator, expected, result", [
    (20, "greater", "18", True),
    ("20", "greater", "18", True),
    (18, "greater", "18", False),
    ("10", "less", "18", True),
    ("30", "less", "18", False),
    ("abc", "greater", "1", False),
    ("abc", "less", "1", False),
    (5, "greater", "abc", False),
    (None, "less", "1", False),
    ("", "less", "1", True),
])
def test_numeric_comparisons(actual, operator, expected, result):
    """Test greater/less with numeric coercion, NaN never compares true."""
    assert evaluate_condition(actual, operator, expected) is result


def test_exists():
    """Test exists only checks that the variable is set."""
    assert evaluate_condition("", "exists", "") is True
    assert evaluate_condition(0, "exists", "") is True
    assert evaluate_condition(None, "exists", "") is False


def test_unknown_operator_is_false():
    """Test an unknown operator fails closed without raising."""
    assert evaluate_condition("a", "matches", "a") is False
    assert evaluate_condition(None, "", "") is False


def test_evaluation_is_pure():
    """Test repeated evaluation gives the same answer and leaves inputs alone."""
    values = {"age": 20}
    for operator in ConditionOperator:
        first = evaluate_condition(values["age"], operator.value, "18")
        second = evaluate_condition(values["age"], operator.value, "18")
        assert first == second
    assert values == {"age": 20}


def test_to_text_and_to_number():
    """Test the rendering and coercion helpers."""
    assert to_text(None) == ""
    assert to_text(False) == "false"
    assert to_text(3.0) == "3"
    assert to_number("  ") == 0.0
    assert to_number(True) == 1.0
    assert to_number("4.5") == 4.5
    assert to_number(None) != to_number(None)  # NaN


@pytest.mark.parametrize("text", ["inf", "-inf", "nan", "NaN", "1_000", "infinity", "12abc", "1e", "0x"])
def test_non_numeric_literals_are_nan(text):
    """Test literals the editor treats as not-a-number never compare."""
    assert math.isnan(to_number(text))
    assert evaluate_condition("5", "greater", text) is False
    assert evaluate_condition("5", "less", text) is False


@pytest.mark.parametrize("text, number", [
    (" 42 ", 42.0),
    ("-1.5e2", -150.0),
    (".5", 0.5),
    ("7.", 7.0),
    ("0x1F", 31.0),
    ("0b101", 5.0),
    ("Infinity", math.inf),
    ("-Infinity", -math.inf),
])
def test_numeric_literals(text, number):
    """Test decimal, exponent, radix and Infinity literals coerce like the editor."""
    assert to_number(text) == number
