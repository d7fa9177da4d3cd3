"""Query execution: filter and group records, then sort and paginate the result."""

import json
import logging
import time
from typing import Any, Callable, Iterable

from loglens.errors import InvalidArgument
from loglens.filters import Predicate, build_filter
from loglens.models import Aggregation, Query, QueryResult, Record
from loglens.values import as_number, is_number, sort_key

logger = logging.getLogger(__name__)

AGGREGATE_FUNCTIONS = ("count", "sum", "avg", "min", "max", "distinct")
FIELD_REQUIRED = ("sum", "avg", "min", "max", "distinct")


def validate_query(query: Query) -> Predicate:
    """Reject malformed queries before any data is touched.

    Returns the compiled filter so callers don't compile it twice.
    """
    for name, value in (("limit", query.limit), ("offset", query.offset)):
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument(f"{name} must be an integer")
        if value < 0:
            raise InvalidArgument(f"{name} cannot be negative")

    group_by = query.group_by or []
    for name in group_by:
        if not isinstance(name, str) or not name:
            raise InvalidArgument("groupBy entries must be non-empty field names")

    seen_keys: set[str] = set()
    for agg in query.aggregations:
        if agg.function not in AGGREGATE_FUNCTIONS:
            raise InvalidArgument(f"invalid aggregation function: {agg.function}")
        if agg.function in FIELD_REQUIRED and not agg.field:
            raise InvalidArgument(f"{agg.function} aggregation requires a field")
        if agg.key in seen_keys:
            raise InvalidArgument(f"duplicate aggregation alias: {agg.key}")
        if agg.key in group_by:
            raise InvalidArgument(f"aggregation alias {agg.key} collides with a groupBy field")
        seen_keys.add(agg.key)

    return build_filter(query.filters)


def _value_key(value: Any) -> tuple:
    """Hashable identity for a value; 1 and 1.0 are the same, True is not 1."""
    if is_number(value):
        return ("n", float(value))
    if isinstance(value, (str, bool)) or value is None:
        return (type(value).__name__, value)
    return ("j", json.dumps(value, sort_keys=True))


def compute_aggregation(agg: Aggregation, records: list[Record]) -> Any:
    """Compute one aggregation over a list of records.

    sum/avg/min/max skip records whose field is missing or not a number and
    return 0.0 when nothing contributes; avg divides by the contributors.
    """
    if agg.function == "count":
        return len(records)

    if agg.function == "distinct":
        return len({_value_key(r.get(agg.field)) for r in records if r.has(agg.field)})

    numbers = [n for n in (as_number(r.get(agg.field)) for r in records) if n is not None]
    if not numbers:
        return 0.0
    if agg.function == "sum":
        return float(sum(numbers))
    if agg.function == "avg":
        return sum(numbers) / len(numbers)
    if agg.function == "min":
        return min(numbers)
    return max(numbers)


def _sort_items(items: list, get_value: Callable[[Any], Any], descending: bool) -> list:
    """Stable sort on a value; items without a value go last in either direction."""
    present = []
    missing = []
    for item in items:
        value = get_value(item)
        if value is None:
            missing.append(item)
        else:
            present.append((sort_key(value), item))
    present.sort(key=lambda pair: pair[0], reverse=descending)
    return [item for _, item in present] + missing


def _paginate(items: list, offset: int, limit: int | None) -> list:
    if limit:
        return items[offset:offset + limit]
    return items[offset:]


def _group_rows(candidates: Iterable[Record], group_by: list[str],
                aggregations: list[Aggregation]) -> list[dict[str, Any]]:
    groups: dict[tuple, tuple[tuple, list[Record]]] = {}
    for record in candidates:
        values = tuple(record.get(name) for name in group_by)
        key = tuple(_value_key(v) for v in values)
        if key not in groups:
            groups[key] = (values, [])
        groups[key][1].append(record)

    ordered = sorted(groups.items(), key=lambda item: [sort_key(v) for v in item[1][0]])

    rows = []
    for _, (values, members) in ordered:
        row: dict[str, Any] = dict(zip(group_by, values))
        for agg in aggregations:
            row[agg.key] = compute_aggregation(agg, members)
        rows.append(row)
    return rows


def execute(query: Query, store) -> QueryResult:
    """Run a query against anything exposing ``scan()`` (normally a RecordStore)."""
    started = time.perf_counter()
    predicate = validate_query(query)
    offset = query.offset or 0

    candidates = [r for r in store.scan() if predicate(r)]
    total = len(candidates)

    aggregations = None
    if query.group_by:
        group_aggs = query.aggregations or [Aggregation(function="count")]
        rows = _group_rows(candidates, query.group_by, group_aggs)
        if query.sort_by:
            rows = _sort_items(rows, lambda row: row.get(query.sort_by), query.sort_desc)
        records: list[Any] = _paginate(rows, offset, query.limit)
    else:
        ordered = candidates
        if query.sort_by:
            ordered = sorted(candidates, key=lambda r: r.id)
            ordered = _sort_items(ordered, lambda r: r.get(query.sort_by), query.sort_desc)
        records = _paginate(ordered, offset, query.limit)
        if query.aggregations:
            aggregations = {agg.key: compute_aggregation(agg, candidates) for agg in query.aggregations}

    took = round((time.perf_counter() - started) * 1000, 3)
    logger.debug("Query matched %d records, returned %d rows in %.3f ms", total, len(records), took)
    return QueryResult(records=records, total=total, took=took, aggregations=aggregations)


def explain(query: Query) -> str:
    """Describe how a query will be executed, after validating it."""
    validate_query(query)
    lines = ["Query Execution Plan:", "====================", ""]

    if query.filters:
        lines.append("Filters (all must match):")
        for i, condition in enumerate(query.filters, 1):
            field = condition.field or "raw"
            operator = condition.operator or condition.type or "equals"
            lines.append(f"  {i}. {field} {operator} {condition.value!r}")
        lines.append("")
    else:
        lines.extend(["Filters: none (full scan)", ""])

    if query.group_by:
        lines.extend([f"Group by: {', '.join(query.group_by)}", ""])

    if query.aggregations:
        lines.append("Aggregations:")
        for i, agg in enumerate(query.aggregations, 1):
            lines.append(f"  {i}. {agg.function}({agg.field or '*'}) AS {agg.key}")
        lines.append("")

    if query.sort_by:
        direction = "DESC" if query.sort_desc else "ASC"
        lines.extend([f"Sort: {query.sort_by} {direction}", ""])

    if query.limit or query.offset:
        lines.append(f"Limit: {query.limit or 'none'}")
        lines.append(f"Offset: {query.offset or 0}")
        lines.append("")

    return "\n".join(lines)
