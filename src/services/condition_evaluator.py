"""
Condition Evaluator
Pure comparison of a variable value against the literal of a condition rule.
"""
import math
import re
from enum import Enum
from typing import Any


# Numeric literals accepted by the editor front end (JavaScript Number()).
# float() alone would also take "inf", "nan" and "1_000".
DECIMAL_LITERAL = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")
INFINITY_LITERAL = re.compile(r"[+-]?Infinity")
RADIX_LITERAL = re.compile(r"0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)")


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER = "greater"
    LESS = "less"
    EXISTS = "exists"


def to_text(value: Any) -> str:
    """
    Textual rendering used by equals/contains.
    Missing values render as an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> float:
    """
    Numeric coercion used by greater/less. Anything that is not a number
    becomes NaN, which makes every comparison False.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return _parse_number(value.strip())
    return math.nan


def _parse_number(text: str) -> float:
    if text == "":
        return 0.0
    if DECIMAL_LITERAL.fullmatch(text) or INFINITY_LITERAL.fullmatch(text):
        return float(text)
    if RADIX_LITERAL.fullmatch(text):
        return float(int(text, 0))
    return math.nan


def evaluate_condition(actual_value: Any, operator: str, expected_value: str) -> bool:
    """
    Evaluate one condition rule.

    Args:
        actual_value: Value of the variable in the run environment (None when unset)
        operator: One of ConditionOperator; anything else evaluates to False
        expected_value: Literal stored on the rule

    Returns:
        True when the rule holds
    """
    expected_text = "" if expected_value is None else str(expected_value)

    if operator == ConditionOperator.EQUALS.value:
        return to_text(actual_value) == expected_text
    elif operator == ConditionOperator.CONTAINS.value:
        return expected_text in to_text(actual_value)
    elif operator == ConditionOperator.GREATER.value:
        return to_number(actual_value) > to_number(expected_text)
    elif operator == ConditionOperator.LESS.value:
        return to_number(actual_value) < to_number(expected_text)
    elif operator == ConditionOperator.EXISTS.value:
        return actual_value is not None
    return False
