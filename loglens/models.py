"""Records, query types and their wire conversion.

Every type converts to the camelCase dict shape exchanged with callers via
``to_dict``; request types parse that shape back with ``from_dict``.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from loglens.errors import InvalidArgument
from loglens.values import normalize_value

RECORD_ATTRIBUTES = ("id", "timestamp", "level", "message", "service", "raw")


def _freeze(value: Any) -> Any:
    """Nested objects become read-only mappings and arrays become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    """Inverse of ``_freeze``: a fresh plain dict / list copy."""
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class Record:
    timestamp: int
    level: str
    message: str
    raw: str
    service: str | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    id: str = ""

    def __post_init__(self):
        if not self.raw:
            raise InvalidArgument("record raw line must not be empty")
        # Stored records are shared with every query result; nothing inside may be mutable.
        object.__setattr__(self, "fields", _freeze(self.fields))

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a fixed attribute or a parser-extracted field by name.

        Dotted names (``http.status``) descend into nested objects when no
        top-level field has that exact name. Objects and arrays are returned
        as plain ``dict`` / ``list`` copies.
        """
        if name in RECORD_ATTRIBUTES:
            value = getattr(self, name)
            return default if value is None else value
        if name in self.fields:
            return _thaw(self.fields[name])
        if "." in name:
            current: Any = self.fields
            for part in name.split("."):
                if not isinstance(current, Mapping) or part not in current:
                    return default
                current = current[part]
            return _thaw(current)
        return default

    def has(self, name: str) -> bool:
        sentinel = object()
        return self.get(name, sentinel) is not sentinel

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "raw": self.raw,
        }
        if self.service is not None:
            data["service"] = self.service
        if self.fields:
            data["fields"] = _thaw(self.fields)
        return data


@dataclass(frozen=True)
class FilterCondition:
    field: str = ""
    value: Any = None
    operator: str = ""
    type: str = ""
    ignore_case: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> "FilterCondition":
        return cls(
            field=d.get("field") or "",
            value=normalize_value(d.get("value"), "filter value"),
            operator=d.get("operator") or "",
            type=d.get("type") or "",
            ignore_case=bool(d.get("ignoreCase", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "value": self.value}
        if self.operator:
            data["operator"] = self.operator
        if self.type:
            data["type"] = self.type
        if self.ignore_case:
            data["ignoreCase"] = True
        return data


@dataclass(frozen=True)
class Aggregation:
    function: str
    field: str = ""
    alias: str = ""

    @property
    def key(self) -> str:
        """Output key: the alias, or ``<function>_<field>`` (plain ``count`` without a field)."""
        if self.alias:
            return self.alias
        if self.field:
            return f"{self.function}_{self.field}"
        return self.function

    @classmethod
    def from_dict(cls, d: dict) -> "Aggregation":
        return cls(
            function=d.get("function", ""),
            field=d.get("field") or "",
            alias=d.get("alias") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        data = {"function": self.function}
        if self.field:
            data["field"] = self.field
        if self.alias:
            data["alias"] = self.alias
        return data


@dataclass
class Query:
    filters: list[FilterCondition] = field(default_factory=list)
    group_by: list[str] | None = None
    aggregations: list[Aggregation] = field(default_factory=list)
    sort_by: str | None = None
    sort_desc: bool = False
    limit: int | None = None
    offset: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> "Query":
        return cls(
            filters=[FilterCondition.from_dict(f) for f in d.get("filters") or []],
            group_by=list(d["groupBy"]) if d.get("groupBy") else None,
            aggregations=[Aggregation.from_dict(a) for a in d.get("aggregations") or []],
            sort_by=d.get("sortBy") or None,
            sort_desc=bool(d.get("sortDesc", False)),
            limit=d.get("limit"),
            offset=d.get("offset") or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"filters": [f.to_dict() for f in self.filters]}
        if self.group_by:
            data["groupBy"] = list(self.group_by)
        if self.aggregations:
            data["aggregations"] = [a.to_dict() for a in self.aggregations]
        if self.sort_by:
            data["sortBy"] = self.sort_by
            data["sortDesc"] = self.sort_desc
        if self.limit:
            data["limit"] = self.limit
        if self.offset:
            data["offset"] = self.offset
        return data


@dataclass
class QueryResult:
    records: list[Any]
    total: int
    took: float = 0.0
    aggregations: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "records": [r.to_dict() if isinstance(r, Record) else dict(r) for r in self.records],
            "total": self.total,
            "took": self.took,
        }
        if self.aggregations is not None:
            data["aggregations"] = dict(self.aggregations)
        return data


@dataclass
class TimelineRequest:
    bucket_ms: int
    filters: list[FilterCondition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> "TimelineRequest":
        return cls(
            bucket_ms=d.get("bucketMs", 0),
            filters=[FilterCondition.from_dict(f) for f in d.get("filters") or []],
        )


@dataclass(frozen=True)
class TimelinePoint:
    bucket_start: int
    count: int

    def to_dict(self) -> dict[str, int]:
        return {"bucketStart": self.bucket_start, "count": self.count}


@dataclass(frozen=True)
class ParserConfig:
    type: str = "plain"
    pattern: str = ""
    fields: Mapping[str, str] = field(default_factory=dict)
    time_format: str = ""
    field_types: Mapping[str, str] = field(default_factory=dict)
    store_unparsed: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> "ParserConfig":
        return cls(
            type=d.get("type") or "plain",
            pattern=d.get("pattern") or "",
            fields=dict(d.get("fields") or {}),
            time_format=d.get("timeFormat") or "",
            field_types=dict(d.get("fieldTypes") or {}),
            store_unparsed=bool(d.get("storeUnparsed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "pattern": self.pattern,
            "fields": dict(self.fields),
            "timeFormat": self.time_format,
            "fieldTypes": dict(self.field_types),
            "storeUnparsed": self.store_unparsed,
        }


@dataclass
class ImportResult:
    total_records: int = 0
    processed: int = 0
    errors: list[str] = field(default_factory=list)
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "totalRecords": self.total_records,
            "processed": self.processed,
            "duration": self.duration,
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data


@dataclass
class Stats:
    total_records: int = 0
    level_counts: dict[str, int] = field(default_factory=dict)
    last_updated: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "levelCounts": dict(self.level_counts),
            "lastUpdated": self.last_updated,
        }


@dataclass
class Report:
    generated_at: int
    query: Query
    bucket_ms: int
    timeline: list[TimelinePoint]
    result: QueryResult

    def to_dict(self) -> dict[str, Any]:
        result = self.result.to_dict()
        return {
            "generatedAt": self.generated_at,
            "query": self.query.to_dict(),
            "bucketMs": self.bucket_ms,
            "timeline": [p.to_dict() for p in self.timeline],
            "total": result["total"],
            "took": result["took"],
            "records": result["records"],
        }
