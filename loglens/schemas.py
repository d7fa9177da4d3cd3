"""JSON Schemas for request payloads and a validator that raises InvalidArgument."""

import jsonschema

from loglens.errors import InvalidArgument

FILTER_CONDITION = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "field": {"type": "string"},
        "value": {},
        "operator": {"type": "string"},
        "ignoreCase": {"type": "boolean"},
    },
    "additionalProperties": False,
}

FILTERS = {"type": "array", "items": FILTER_CONDITION}

AGGREGATION = {
    "type": "object",
    "properties": {
        "function": {"type": "string"},
        "field": {"type": "string"},
        "alias": {"type": "string"},
    },
    "required": ["function"],
    "additionalProperties": False,
}

QUERY = {
    "type": "object",
    "properties": {
        "filters": FILTERS,
        "groupBy": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "aggregations": {"type": "array", "items": AGGREGATION},
        "sortBy": {"type": "string"},
        "sortDesc": {"type": "boolean"},
        "limit": {"type": "integer", "minimum": 0},
        "offset": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": False,
}

TIMELINE_REQUEST = {
    "type": "object",
    "properties": {
        "filters": FILTERS,
        "bucketMs": {"type": "integer", "exclusiveMinimum": 0},
    },
    "required": ["bucketMs"],
    "additionalProperties": False,
}

PARSER_CONFIG = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "pattern": {"type": "string"},
        "fields": {"type": "object", "additionalProperties": {"type": "string"}},
        "timeFormat": {"type": "string"},
        "fieldTypes": {
            "type": "object",
            "additionalProperties": {"enum": ["int", "float", "bool", "string"]},
        },
        "storeUnparsed": {"type": "boolean"},
    },
    "additionalProperties": False,
}

INGEST_REQUEST = {
    "type": "object",
    "properties": {
        "lines": {"type": "array", "items": {"type": "string"}},
        "parser": PARSER_CONFIG,
    },
    "required": ["lines"],
    "additionalProperties": False,
}

REPORT_REQUEST = {
    "type": "object",
    "properties": {
        "query": QUERY,
        "bucketMs": {"type": "integer", "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

SCHEMAS = {
    "query": QUERY,
    "timeline": TIMELINE_REQUEST,
    "parser": PARSER_CONFIG,
    "ingest": INGEST_REQUEST,
    "report": REPORT_REQUEST,
}

_VALIDATORS = {name: jsonschema.Draft202012Validator(schema) for name, schema in SCHEMAS.items()}


def validate(schema_name: str, payload) -> list[str]:
    """Return a list of error messages (empty when the payload is valid)."""
    validator = _VALIDATORS[schema_name]
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    messages = []
    for error in errors:
        location = "/".join(str(p) for p in error.path)
        messages.append(f"{location}: {error.message}" if location else error.message)
    return messages


def require_valid(schema_name: str, payload) -> dict:
    """Validate a payload, raising InvalidArgument with every problem found."""
    messages = validate(schema_name, payload)
    if messages:
        raise InvalidArgument(f"invalid {schema_name} request", details=messages)
    return payload
