"""Filter predicates for records.

Conditions are compiled once with ``build_filter`` (which validates operators,
operands, and regexes up front) into a single callable that ANDs them.
"""

import logging
import re
from typing import Any, Callable, Iterable

from loglens.errors import EvaluationError, InvalidArgument
from loglens.models import FilterCondition, Record
from loglens.values import as_number, is_number, parse_iso_timestamp, parse_number

logger = logging.getLogger(__name__)

EQUALS = "equals"
NOT_EQUALS = "not-equals"
CONTAINS = "contains"
REGEX_MATCH = "regex-match"
GREATER_THAN = "greater-than"
LESS_THAN = "less-than"
GREATER_OR_EQUAL = "greater-or-equal"
LESS_OR_EQUAL = "less-or-equal"
IN_SET = "in-set"

OPERATOR_ALIASES = {
    EQUALS: EQUALS, "eq": EQUALS, "=": EQUALS, "==": EQUALS,
    NOT_EQUALS: NOT_EQUALS, "ne": NOT_EQUALS, "neq": NOT_EQUALS, "!=": NOT_EQUALS,
    CONTAINS: CONTAINS,
    REGEX_MATCH: REGEX_MATCH, "regex": REGEX_MATCH, "regexp": REGEX_MATCH, "matches": REGEX_MATCH,
    GREATER_THAN: GREATER_THAN, "gt": GREATER_THAN, ">": GREATER_THAN,
    LESS_THAN: LESS_THAN, "lt": LESS_THAN, "<": LESS_THAN,
    GREATER_OR_EQUAL: GREATER_OR_EQUAL, "gte": GREATER_OR_EQUAL, ">=": GREATER_OR_EQUAL,
    LESS_OR_EQUAL: LESS_OR_EQUAL, "lte": LESS_OR_EQUAL, "<=": LESS_OR_EQUAL,
    IN_SET: IN_SET, "in": IN_SET,
}

RANGE_OPERATORS = (GREATER_THAN, LESS_THAN, GREATER_OR_EQUAL, LESS_OR_EQUAL)

# Condition type family -> operator used when the condition names none.
# Range families have no default and require an explicit range operator.
TYPE_DEFAULTS = {
    "equality": EQUALS,
    "field-equality": EQUALS,
    "exclusion": NOT_EQUALS,
    "contains": CONTAINS,
    "text-match": CONTAINS,
    "regexp": REGEX_MATCH,
    "range": None,
    "time-range": None,
    "in": IN_SET,
}

DEFAULT_FIELD = "raw"

Predicate = Callable[[Record], bool]


def resolve_operator(condition: FilterCondition) -> str:
    """Return the canonical operator for a condition, validating its type family."""
    if condition.type and condition.type not in TYPE_DEFAULTS:
        raise InvalidArgument(f"unknown filter type: {condition.type}")

    if condition.operator:
        operator = OPERATOR_ALIASES.get(condition.operator.lower())
        if operator is None:
            raise InvalidArgument(f"unknown filter operator: {condition.operator}")
    elif condition.type:
        operator = TYPE_DEFAULTS[condition.type]
        if operator is None:
            raise InvalidArgument(f"{condition.type} filter requires an operator")
    else:
        operator = EQUALS

    if condition.type in ("range", "time-range") and operator not in RANGE_OPERATORS:
        raise InvalidArgument(f"invalid range operator: {condition.operator}")
    return operator


def _timestamp_operand(value: Any) -> Any:
    """Allow ISO strings as operands for the timestamp field."""
    if isinstance(value, str):
        converted = parse_iso_timestamp(value)
        if converted is not None:
            return converted
    return value


def values_equal(record_value: Any, operand: Any, ignore_case: bool = False) -> bool:
    """Equality used by equals, not-equals, and in-set.

    A numeric record value compares numerically, with string operands parsed
    as numbers. Strings compare exactly (or case-folded). Booleans only equal
    booleans.
    """
    if is_number(record_value):
        number = parse_number(operand)
        return number is not None and float(record_value) == number
    if isinstance(record_value, bool) or isinstance(operand, bool):
        return record_value is operand
    if ignore_case and isinstance(record_value, str) and isinstance(operand, str):
        return record_value.casefold() == operand.casefold()
    return record_value == operand


def _require_string(value: Any, operator: str) -> str:
    if not isinstance(value, str):
        raise EvaluationError(f"{operator} needs a string value, got {type(value).__name__}")
    return value


def compile_condition(condition: FilterCondition) -> Predicate:
    """Compile one condition into a predicate. Raises InvalidArgument for bad conditions."""
    operator = resolve_operator(condition)
    field = condition.field or DEFAULT_FIELD
    operand = condition.value
    ignore_case = condition.ignore_case

    if field == "timestamp":
        if isinstance(operand, list):
            operand = [_timestamp_operand(v) for v in operand]
        else:
            operand = _timestamp_operand(operand)

    if operator in (EQUALS, NOT_EQUALS):
        negate = operator == NOT_EQUALS

        def check(value):
            return values_equal(value, operand, ignore_case) != negate

    elif operator == CONTAINS:
        if not isinstance(operand, str):
            raise InvalidArgument("contains filter requires a string value")
        needle = operand.casefold() if ignore_case else operand

        def check(value):
            text = _require_string(value, CONTAINS)
            return needle in (text.casefold() if ignore_case else text)

    elif operator == REGEX_MATCH:
        if not isinstance(operand, str):
            raise InvalidArgument("regex-match filter requires a string pattern")
        try:
            regex = re.compile(operand, re.IGNORECASE if ignore_case else 0)
        except re.error as e:
            raise InvalidArgument(f"invalid regex {operand!r}: {e}") from e

        def check(value):
            return regex.search(_require_string(value, REGEX_MATCH)) is not None

    elif operator in RANGE_OPERATORS:
        bound = parse_number(operand)
        if bound is None:
            raise InvalidArgument(f"{operator} filter requires a numeric value")
        compare = {
            GREATER_THAN: lambda n: n > bound,
            LESS_THAN: lambda n: n < bound,
            GREATER_OR_EQUAL: lambda n: n >= bound,
            LESS_OR_EQUAL: lambda n: n <= bound,
        }[operator]

        def check(value):
            number = as_number(value)
            return number is not None and compare(number)

    else:  # IN_SET
        if not isinstance(operand, list):
            raise InvalidArgument("in-set filter requires a list value")
        members = list(operand)

        def check(value):
            return any(values_equal(value, m, ignore_case) for m in members)

    def predicate(record: Record) -> bool:
        if not record.has(field):
            return operator == NOT_EQUALS
        return check(record.get(field))

    return predicate


def build_filter(conditions: Iterable[FilterCondition]) -> Predicate:
    """Combine conditions into one callable that ANDs them.

    A condition that cannot be evaluated against a particular record
    excludes that record instead of failing the whole request.
    """
    predicates = [compile_condition(c) for c in conditions]

    if not predicates:
        return lambda record: True

    def combined(record: Record) -> bool:
        try:
            return all(p(record) for p in predicates)
        except EvaluationError as e:
            logger.debug("Excluding record %s: %s", record.id, e)
            return False

    return combined


def matches(record: Record, conditions: Iterable[FilterCondition]) -> bool:
    """True if the record satisfies every condition."""
    return build_filter(conditions)(record)
