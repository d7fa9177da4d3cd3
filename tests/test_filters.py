"""Tests for filter predicates."""

import pytest

from loglens.errors import InvalidArgument
from loglens.filters import build_filter, matches, resolve_operator
from loglens.models import FilterCondition, Record


def _record(**overrides):
    defaults = dict(
        id="000000000001",
        timestamp=1704067205000,
        level="ERROR",
        message="Connection refused by upstream",
        raw="2024-01-01T00:00:05Z ERROR api Connection refused by upstream",
        service="api",
        fields={"status": 503, "latency": 12.5, "code": "503", "cached": False, "http": {"method": "GET"}},
    )
    defaults.update(overrides)
    return Record(**defaults)


def _cond(field, value, operator="", **kwargs):
    return FilterCondition(field=field, value=value, operator=operator, **kwargs)


class TestResolveOperator:
    @pytest.mark.parametrize("alias,canonical", [
        ("eq", "equals"), ("==", "equals"), ("ne", "not-equals"), ("!=", "not-equals"),
        ("regex", "regex-match"), ("gt", "greater-than"), (">=", "greater-or-equal"),
        ("LTE", "less-or-equal"), ("in", "in-set"),
    ])
    def test_aliases(self, alias, canonical):
        assert resolve_operator(_cond("x", 1, alias)) == canonical

    def test_default_is_equals(self):
        assert resolve_operator(_cond("x", 1)) == "equals"

    @pytest.mark.parametrize("type_name,operator", [
        ("equality", "equals"), ("exclusion", "not-equals"), ("text-match", "contains"),
        ("regexp", "regex-match"), ("in", "in-set"),
    ])
    def test_type_defaults(self, type_name, operator):
        assert resolve_operator(FilterCondition(field="x", value="a", type=type_name)) == operator

    def test_unknown_operator(self):
        with pytest.raises(InvalidArgument):
            resolve_operator(_cond("x", 1, "approximately"))

    def test_unknown_type(self):
        with pytest.raises(InvalidArgument):
            resolve_operator(FilterCondition(field="x", value=1, type="fuzzy"))

    def test_range_type_requires_operator(self):
        with pytest.raises(InvalidArgument):
            resolve_operator(FilterCondition(field="x", value=1, type="range"))

    def test_range_type_rejects_equality(self):
        with pytest.raises(InvalidArgument):
            resolve_operator(FilterCondition(field="x", value=1, type="range", operator="eq"))


class TestEquality:
    def test_attribute(self):
        assert matches(_record(), [_cond("level", "ERROR")])
        assert not matches(_record(), [_cond("level", "error")])

    def test_ignore_case(self):
        assert matches(_record(), [_cond("level", "error", ignore_case=True)])

    def test_numeric_field(self):
        assert matches(_record(), [_cond("status", 503)])
        assert matches(_record(), [_cond("status", 503.0)])
        assert matches(_record(), [_cond("status", "503")])

    def test_string_field_is_not_coerced(self):
        assert not matches(_record(), [_cond("code", 503)])
        assert matches(_record(), [_cond("code", "503")])

    def test_bool_is_not_number(self):
        assert matches(_record(), [_cond("cached", False)])
        assert not matches(_record(), [_cond("cached", 0)])

    def test_nested_path(self):
        assert matches(_record(), [_cond("http.method", "GET")])

    def test_absent_field_never_equals(self):
        assert not matches(_record(), [_cond("missing", None)])

    def test_not_equals(self):
        assert matches(_record(), [_cond("level", "INFO", "ne")])
        assert not matches(_record(), [_cond("level", "ERROR", "ne")])

    def test_not_equals_matches_absent_field(self):
        assert matches(_record(), [_cond("missing", "x", "not-equals")])
        assert matches(_record(service=None), [_cond("service", "api", "ne")])


class TestContains:
    def test_case_sensitive(self):
        assert matches(_record(), [_cond("message", "refused", "contains")])
        assert not matches(_record(), [_cond("message", "REFUSED", "contains")])

    def test_ignore_case(self):
        assert matches(_record(), [_cond("message", "REFUSED", "contains", ignore_case=True)])

    def test_empty_field_means_raw_line(self):
        assert matches(_record(), [_cond("", "2024-01-01T00:00:05Z", "contains")])

    def test_non_string_value_excludes_record(self):
        assert not matches(_record(), [_cond("status", "50", "contains")])

    def test_non_string_operand_rejected(self):
        with pytest.raises(InvalidArgument):
            build_filter([_cond("message", 5, "contains")])


class TestRegex:
    def test_match(self):
        assert matches(_record(), [_cond("message", r"^Conn\w+ refused", "regex")])
        assert not matches(_record(), [_cond("message", r"^refused", "regex")])

    def test_ignore_case(self):
        assert matches(_record(), [_cond("message", "CONNECTION", "regex", ignore_case=True)])

    def test_invalid_pattern_rejected_up_front(self):
        with pytest.raises(InvalidArgument):
            build_filter([_cond("message", "([", "regex-match")])

    def test_non_string_value_excludes_record(self):
        assert not matches(_record(), [_cond("status", r"\d+", "regex")])


class TestRange:
    @pytest.mark.parametrize("operator,value,expected", [
        ("gt", 500, True), ("gt", 503, False),
        ("gte", 503, True), ("lt", 503, False),
        ("lte", 503, True), ("lt", "600", True),
    ])
    def test_numeric(self, operator, value, expected):
        assert matches(_record(), [_cond("status", value, operator)]) is expected

    def test_non_numeric_value_excludes_record(self):
        assert not matches(_record(), [_cond("code", 100, "gt")])

    def test_non_numeric_operand_rejected(self):
        with pytest.raises(InvalidArgument):
            build_filter([_cond("status", "high", "gt")])

    def test_timestamp_iso_operand(self):
        record = _record()
        assert matches(record, [_cond("timestamp", "2024-01-01T00:00:00Z", "gt", type="time-range")])
        assert not matches(record, [_cond("timestamp", "2024-01-01T00:00:05Z", "lt", type="time-range")])

    def test_timestamp_window(self):
        conditions = [
            _cond("timestamp", 1704067200000, "gte"),
            _cond("timestamp", 1704067210000, "lt"),
        ]
        assert matches(_record(), conditions)


class TestInSet:
    def test_membership(self):
        assert matches(_record(), [_cond("level", ["WARN", "ERROR"], "in")])
        assert not matches(_record(), [_cond("level", ["WARN", "INFO"], "in")])

    def test_numeric_membership(self):
        assert matches(_record(), [_cond("status", [500, 503], "in-set")])

    def test_ignore_case(self):
        assert matches(_record(), [_cond("level", ["error"], "in", ignore_case=True)])

    def test_requires_list(self):
        with pytest.raises(InvalidArgument):
            build_filter([_cond("level", "ERROR", "in")])


class TestBuildFilter:
    def test_empty_matches_everything(self):
        assert build_filter([])(_record())

    def test_conditions_are_anded(self):
        assert matches(_record(), [_cond("level", "ERROR"), _cond("service", "api")])
        assert not matches(_record(), [_cond("level", "ERROR"), _cond("service", "web")])

    def test_evaluation_does_not_mutate_record(self):
        record = _record()
        before = record.to_dict()
        predicate = build_filter([_cond("message", "refused", "contains")])
        assert predicate(record) and predicate(record)
        assert record.to_dict() == before
