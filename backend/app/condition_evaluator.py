"""
Evaluation of conditional rules against in-progress form answers.

Every function here fails closed: a missing answer, a wrongly typed operand,
an unknown operator or a rule that does not parse all evaluate to False so a
misconfigured gate hides content instead of erroring or exposing it.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .form_schema import (
    Clause,
    ConditionalRule,
    ConditionItem,
    NestedAndCondition,
    Operator,
    load_rule,
)

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if _is_number(value):
        return "number"
    return type(value).__name__


def strict_equals(left: Any, right: Any) -> bool:
    """
    Equality without coercion: True never equals 1, "1" never equals 1.

    Lists are never equal to anything, not even a list with the same
    content, so `=` against a multi-select answer does not match. Use IN.
    """
    if isinstance(left, list) or isinstance(right, list):
        return False
    return _kind(left) == _kind(right) and left == right


def _contains(haystack: Any, needle: Any) -> bool:
    if not isinstance(haystack, list):
        return False
    return any(strict_equals(needle, candidate) for candidate in haystack)


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def apply(actual: Any, expected: Any) -> bool:
        if not _is_number(actual) or not _is_number(expected):
            return False
        return compare(actual, expected)

    return apply


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    Operator.eq.value: strict_equals,
    Operator.ne.value: lambda actual, expected: not strict_equals(actual, expected),
    Operator.in_.value: lambda actual, expected: _contains(expected, actual),
    Operator.not_in.value: lambda actual, expected: (
        isinstance(expected, list) and not _contains(expected, actual)
    ),
    Operator.gt.value: _numeric(lambda a, b: a > b),
    Operator.gte.value: _numeric(lambda a, b: a >= b),
    Operator.lt.value: _numeric(lambda a, b: a < b),
    Operator.lte.value: _numeric(lambda a, b: a <= b),
}


def evaluate_item(item: ConditionItem, values: Mapping[str, Any]) -> bool:
    # An absent answer never satisfies a condition. An answer explicitly set
    # to None is still compared.
    if item.field not in values:
        return False
    compare = _OPERATORS.get(item.operator)
    if compare is None:
        logger.debug("Unknown operator %r on field %r", item.operator, item.field)
        return False
    return compare(values[item.field], item.value)


def _evaluate_clause(clause: Clause, values: Mapping[str, Any]) -> bool:
    if isinstance(clause, NestedAndCondition):
        return _evaluate_and(clause.all_of, values)
    return evaluate_item(clause, values)


def _evaluate_and(clauses: Sequence[Clause], values: Mapping[str, Any]) -> bool:
    # all() of an empty group is True: no constraints means always satisfied.
    return all(_evaluate_clause(clause, values) for clause in clauses)


def _evaluate_or(clauses: Sequence[Clause], values: Mapping[str, Any]) -> bool:
    # any() of an empty group is False: no alternative can match.
    return any(_evaluate_clause(clause, values) for clause in clauses)


def parse_rule(raw: ConditionalRule | Mapping[str, Any] | None) -> ConditionalRule | None:
    """Load a stored rule; clauses that do not parse never match."""
    if raw is None:
        return None
    return load_rule(raw)


def evaluate_rule(
    rule: ConditionalRule | Mapping[str, Any] | None, values: Mapping[str, Any]
) -> bool:
    """
    Evaluate a rule against form answers.

    ``AND`` takes precedence: when it is present (even empty) any ``OR`` key
    is ignored. A rule with neither key evaluates to False.
    """
    parsed = parse_rule(rule)
    if parsed is None:
        return False
    if parsed.all_of is not None:
        return _evaluate_and(parsed.all_of, values)
    if parsed.any_of is not None:
        return _evaluate_or(parsed.any_of, values)
    return False
