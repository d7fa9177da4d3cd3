"""Tests for the data model types and their wire shapes."""

import dataclasses

import pytest

from loglens.errors import InvalidArgument
from loglens.models import (
    Aggregation,
    FilterCondition,
    ImportResult,
    ParserConfig,
    Query,
    QueryResult,
    Record,
    Stats,
    TimelinePoint,
    TimelineRequest,
)


def _record(**overrides):
    defaults = dict(timestamp=1000, level="INFO", message="hello", raw="raw line")
    defaults.update(overrides)
    return Record(**defaults)


class TestRecord:
    def test_empty_raw_rejected(self):
        with pytest.raises(InvalidArgument):
            _record(raw="")

    def test_is_frozen(self):
        record = _record()
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.level = "ERROR"

    def test_fields_are_read_only(self):
        record = _record(fields={"status": 200})
        with pytest.raises(TypeError):
            record.fields["status"] = 500

    def test_nested_fields_are_read_only(self):
        record = _record(fields={"http": {"status": 200, "hops": ["a", {"b": 1}]}})
        with pytest.raises(TypeError):
            record.fields["http"]["status"] = 500
        with pytest.raises((TypeError, AttributeError)):
            record.fields["http"]["hops"].append("c")
        with pytest.raises(TypeError):
            record.fields["http"]["hops"][1]["b"] = 2

    def test_nested_source_mutation_does_not_leak(self):
        source = {"http": {"status": 200}, "tags": ["a"]}
        record = _record(fields=source)
        source["http"]["status"] = 500
        source["tags"].append("b")
        assert record.get("http.status") == 200
        assert record.get("tags") == ["a"]

    def test_get_and_to_dict_return_copies(self):
        record = _record(fields={"http": {"status": 200}, "tags": ["a"]})
        record.get("http")["status"] = 500
        record.get("tags").append("b")
        record.to_dict()["fields"]["http"]["status"] = 404
        assert record.to_dict()["fields"] == {"http": {"status": 200}, "tags": ["a"]}

    def test_fields_copied_from_caller(self):
        source = {"status": 200}
        record = _record(fields=source)
        source["status"] = 500
        assert record.fields["status"] == 200

    def test_get_attribute_and_field(self):
        record = _record(service="api", fields={"status": 200})
        assert record.get("level") == "INFO"
        assert record.get("service") == "api"
        assert record.get("status") == 200
        assert record.get("missing", "x") == "x"

    def test_get_dotted_path(self):
        record = _record(fields={"http": {"status": 404}})
        assert record.get("http.status") == 404
        assert record.has("http.status")
        assert not record.has("http.method")

    def test_exact_dotted_name_wins(self):
        record = _record(fields={"http.status": 1, "http": {"status": 2}})
        assert record.get("http.status") == 1

    def test_missing_service_is_absent(self):
        record = _record()
        assert not record.has("service")

    def test_to_dict(self):
        record = _record(id="000000000001", service="api", fields={"status": 200})
        assert record.to_dict() == {
            "id": "000000000001",
            "timestamp": 1000,
            "level": "INFO",
            "message": "hello",
            "raw": "raw line",
            "service": "api",
            "fields": {"status": 200},
        }

    def test_to_dict_omits_empty_optionals(self):
        data = _record().to_dict()
        assert "service" not in data
        assert "fields" not in data


class TestFilterCondition:
    def test_from_dict(self):
        condition = FilterCondition.from_dict(
            {"field": "level", "value": "error", "operator": "eq", "ignoreCase": True}
        )
        assert condition == FilterCondition(field="level", value="error", operator="eq", ignore_case=True)

    def test_from_dict_rejects_unsupported_value(self):
        with pytest.raises(InvalidArgument):
            FilterCondition.from_dict({"field": "x", "value": object()})

    def test_to_dict_round_trip(self):
        data = {"field": "status", "value": 500, "operator": "gte", "type": "range"}
        assert FilterCondition.from_dict(data).to_dict() == data


class TestAggregation:
    @pytest.mark.parametrize("agg,key", [
        (Aggregation("count"), "count"),
        (Aggregation("avg", "latency"), "avg_latency"),
        (Aggregation("sum", "bytes", "total_bytes"), "total_bytes"),
    ])
    def test_key(self, agg, key):
        assert agg.key == key


class TestQuery:
    def test_from_dict(self):
        query = Query.from_dict({
            "filters": [{"field": "level", "value": "ERROR"}],
            "groupBy": ["service"],
            "aggregations": [{"function": "count"}],
            "sortBy": "count",
            "sortDesc": True,
            "limit": 10,
            "offset": 5,
        })
        assert query.filters == [FilterCondition(field="level", value="ERROR")]
        assert query.group_by == ["service"]
        assert query.aggregations == [Aggregation("count")]
        assert query.sort_by == "count"
        assert query.sort_desc is True
        assert query.limit == 10
        assert query.offset == 5

    def test_empty_dict_is_match_all(self):
        query = Query.from_dict({})
        assert query.filters == []
        assert query.group_by is None
        assert query.limit is None
        assert query.offset == 0

    def test_to_dict_omits_defaults(self):
        assert Query().to_dict() == {"filters": []}


class TestResults:
    def test_query_result_to_dict_with_rows(self):
        result = QueryResult(records=[{"service": "api", "count": 2}], total=2, took=0.5)
        assert result.to_dict() == {
            "records": [{"service": "api", "count": 2}],
            "total": 2,
            "took": 0.5,
        }

    def test_query_result_includes_aggregations(self):
        result = QueryResult(records=[], total=0, aggregations={"count": 0})
        assert result.to_dict()["aggregations"] == {"count": 0}

    def test_import_result_omits_empty_errors(self):
        assert "errors" not in ImportResult(total_records=1, processed=1).to_dict()
        assert ImportResult(errors=["line 1: x"]).to_dict()["errors"] == ["line 1: x"]

    def test_stats_to_dict(self):
        stats = Stats(total_records=2, level_counts={"ERROR": 1, "INFO": 1}, last_updated=5)
        assert stats.to_dict() == {
            "totalRecords": 2,
            "levelCounts": {"ERROR": 1, "INFO": 1},
            "lastUpdated": 5,
        }

    def test_timeline_point_to_dict(self):
        assert TimelinePoint(10000, 2).to_dict() == {"bucketStart": 10000, "count": 2}

    def test_timeline_request_from_dict(self):
        request = TimelineRequest.from_dict({"bucketMs": 10000, "filters": [{"field": "level", "value": "INFO"}]})
        assert request.bucket_ms == 10000
        assert request.filters == [FilterCondition(field="level", value="INFO")]


class TestParserConfig:
    def test_defaults_to_plain(self):
        assert ParserConfig.from_dict({}).type == "plain"

    def test_from_dict_camel_case(self):
        config = ParserConfig.from_dict({
            "type": "regex",
            "pattern": "(?P<message>.*)",
            "timeFormat": "epoch",
            "fieldTypes": {"status": "int"},
            "storeUnparsed": True,
        })
        assert config.time_format == "epoch"
        assert config.field_types == {"status": "int"}
        assert config.store_unparsed is True
        assert ParserConfig.from_dict(config.to_dict()) == config
