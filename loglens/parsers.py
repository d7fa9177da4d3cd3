"""Line parsers: turn one raw log line into a Record from a ParserConfig.

Supported types:
  plain      heuristic timestamp / level / [service] extraction, never fails
  json       one JSON object per line, well-known keys mapped to attributes
  regex      named capture groups mapped through ``fields``
  grok       %{PATTERN:field} expressions expanded into a regex
  delimited  csv-style columns named "0", "1", ... mapped through ``fields``
"""

import csv
import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any

from loglens.errors import InvalidArgument, ParseError
from loglens.models import ParserConfig, Record
from loglens.values import normalize_value, now_ms, parse_iso_timestamp, parse_number, to_epoch_ms

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("plain", "json", "regex", "grok", "delimited")

# Capture names understood without an explicit ``fields`` mapping
_ATTRIBUTE_ALIASES = {
    "id": "id",
    "timestamp": "timestamp", "time": "timestamp", "ts": "timestamp",
    "level": "level", "severity": "level", "priority": "level",
    "service": "service", "app": "service", "application": "service",
    "message": "message", "msg": "message", "text": "message",
}

_JSON_KEYS = {
    "id": ("id",),
    "timestamp": ("timestamp", "time", "@timestamp", "ts", "datetime"),
    "level": ("level", "severity", "priority", "loglevel"),
    "service": ("service", "service_name", "application", "app", "component"),
    "message": ("message", "msg", "text", "content", "log"),
}

FALLBACK_TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%d/%b/%Y:%H:%M:%S %z",
)

_SYSLOG_TIME_FORMAT = "%b %d %H:%M:%S"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")

GROK_PATTERNS = {
    "WORD": r"\b\w+\b",
    "NOTSPACE": r"\S+",
    "SPACE": r"\s*",
    "DATA": r".*?",
    "GREEDYDATA": r".*",
    "INT": r"[+-]?\d+",
    "POSINT": r"\b[1-9]\d*\b",
    "NUMBER": r"[+-]?(?:\d+(?:\.\d+)?|\.\d+)",
    "IPV4": r"(?<![0-9])(?:\d{1,3}\.){3}\d{1,3}(?![0-9])",
    "IP": r"(?<![0-9])(?:\d{1,3}\.){3}\d{1,3}(?![0-9])",
    "HOSTNAME": r"\b[0-9A-Za-z][0-9A-Za-z\-.]*\b",
    "UUID": r"[A-Fa-f0-9]{8}-(?:[A-Fa-f0-9]{4}-){3}[A-Fa-f0-9]{12}",
    "LOGLEVEL": r"(?i:trace|debug|info|notice|warn(?:ing)?|error|err|crit(?:ical)?|fatal|severe|panic|emerg(?:ency)?|alert)",
    "TIMESTAMP_ISO8601": r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?",
    "HTTPDATE": r"\d{2}/\w{3}/\d{4}:\d{2}:\d{2}:\d{2} [+-]\d{4}",
    "SYSLOGTIMESTAMP": r"\w{3} +\d{1,2} \d{2}:\d{2}:\d{2}",
    "QUOTEDSTRING": r'"(?:[^"\\]|\\.)*"',
    "PATH": r"(?:/[^\s]*)+",
    "URIPATHPARAM": r"/[^\s?]*(?:\?\S*)?",
}

_GROK_RE = re.compile(r"%\{(?P<name>\w+)(?::(?P<field>\w+))?(?::(?P<type>int|float))?\}")

# Plain-text heuristics
_PLAIN_TIMESTAMP_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?"
    r"|\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}"
    r"|\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2}"
    r"|[A-Z][a-z]{2} +\d{1,2} \d{2}:\d{2}:\d{2}"
)
_PLAIN_LEVEL_RE = re.compile(
    r"\[?\b(TRACE|DEBUG|INFO|WARN(?:ING)?|ERROR|FATAL|PANIC|CRITICAL)\b\]?:?",
    re.IGNORECASE,
)
_PLAIN_SERVICE_RE = re.compile(r"\[([A-Za-z0-9_.-]+)\]|\bservice=([A-Za-z0-9_.-]+)")
_EMPTY_BRACKETS_RE = re.compile(r"\[\s*\]")


# ---------------------------------------------------------------------------
# Timestamps and typed captures
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any, time_format: str = "") -> int | None:
    """Convert a captured timestamp to epoch milliseconds, or None if it cannot be parsed.

    ``time_format`` is a strptime layout, or ``epoch`` / ``epoch_ms`` for
    numeric Unix times. Without a format, numbers at or above 1e11 are read as
    milliseconds and smaller ones as seconds.
    """
    if value is None or isinstance(value, bool):
        return None

    if time_format in ("epoch", "epoch_ms"):
        number = parse_number(value)
        if number is None or not math.isfinite(number):
            return None
        return int(number) if time_format == "epoch_ms" else int(number * 1000)

    number = parse_number(value) if not isinstance(value, str) else None
    if number is not None and not math.isfinite(number):
        return None
    if number is not None:
        return int(number) if abs(number) >= 1e11 else int(number * 1000)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if time_format:
        try:
            return to_epoch_ms(datetime.strptime(text, time_format))
        except ValueError:
            logger.debug("Timestamp %r does not match format %r", text, time_format)

    iso = parse_iso_timestamp(text)
    if iso is not None:
        return iso

    for fmt in FALLBACK_TIME_FORMATS:
        try:
            return to_epoch_ms(datetime.strptime(text, fmt))
        except ValueError:
            continue

    # Syslog timestamps carry no year, assume the current one
    try:
        year = datetime.now(timezone.utc).year
        return to_epoch_ms(datetime.strptime(f"{year} {text}", f"%Y {_SYSLOG_TIME_FORMAT}"))
    except ValueError:
        return None


def convert_typed(value: Any, type_name: str) -> Any:
    """Apply an explicit ``fieldTypes`` conversion. Raises ValueError on failure."""
    if type_name == "string":
        return value if isinstance(value, str) else json.dumps(value)
    if not isinstance(value, str):
        return value
    if type_name == "int":
        return int(value.strip())
    if type_name == "float":
        return float(value.strip())
    if type_name == "bool":
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    raise ValueError(f"unknown field type: {type_name}")


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


class LineParser:
    """Base class: handles empty lines, the unparsed-line policy, and record assembly."""

    type_name = ""

    def __init__(self, config: ParserConfig):
        for target, type_name in config.field_types.items():
            if type_name not in ("int", "float", "bool", "string"):
                raise InvalidArgument(f"unknown field type {type_name!r} for field {target!r}")
        self.config = config

    def parse(self, line: str) -> Record:
        if not line or not line.strip():
            raise ParseError("empty line")
        try:
            return self._parse(line)
        except ParseError:
            if self.config.store_unparsed:
                return Record(timestamp=now_ms(), level="unknown", message=line, raw=line)
            raise

    def _parse(self, line: str) -> Record:
        raise NotImplementedError

    def _map_captures(self, captures: dict[str, Any]) -> dict[str, Any]:
        """Rename captures to Record field names.

        With an explicit mapping only the mapped captures survive; otherwise
        every capture keeps its name, with the well-known attribute aliases.
        """
        mapped: dict[str, Any] = {}
        if self.config.fields:
            for name, target in self.config.fields.items():
                if captures.get(name) is not None:
                    mapped[target] = captures[name]
        else:
            for name, value in captures.items():
                if value is not None:
                    mapped[_ATTRIBUTE_ALIASES.get(name.lower(), name)] = value
        return mapped

    def _build_record(self, line: str, values: dict[str, Any],
                      extra: dict[str, Any] | None = None) -> Record:
        """Assemble a Record from attribute-named ``values``.

        ``extra`` holds captures that go into ``fields`` as-is, even when
        their name matches a Record attribute.
        """
        values = dict(values)
        extra = dict(extra or {})
        for target, type_name in self.config.field_types.items():
            for bucket in (values, extra):
                if target in bucket:
                    try:
                        bucket[target] = convert_typed(bucket[target], type_name)
                    except ValueError:
                        logger.debug("Could not convert %s=%r to %s", target, bucket[target], type_name)

        captured_ts = values.pop("timestamp", None)
        timestamp = parse_timestamp(captured_ts, self.config.time_format)
        if timestamp is None:
            if captured_ts is not None:
                logger.debug("Unparseable timestamp %r, using ingestion time", captured_ts)
            timestamp = now_ms()

        level = values.pop("level", None)
        message = values.pop("message", None)
        service = values.pop("service", None)
        record_id = values.pop("id", None)
        values.pop("raw", None)

        return Record(
            id=str(record_id) if record_id not in (None, "") else "",
            timestamp=timestamp,
            level=str(level).upper() if level not in (None, "") else "INFO",
            message=str(message) if message not in (None, "") else line,
            service=str(service) if service not in (None, "") else None,
            fields=normalize_value({**extra, **values}, "fields"),
            raw=line,
        )


class RegexParser(LineParser):
    type_name = "regex"

    def __init__(self, config: ParserConfig):
        super().__init__(config)
        if not config.pattern:
            raise InvalidArgument(f"{self.type_name} parser requires a pattern")
        self._regex = self._compile(config.pattern)

    @staticmethod
    def _compile(pattern: str) -> re.Pattern:
        try:
            return re.compile(pattern)
        except re.error as e:
            raise InvalidArgument(f"invalid regex pattern: {e}") from e

    def _parse(self, line: str) -> Record:
        match = self._regex.search(line)
        if not match:
            raise ParseError("line does not match pattern")
        return self._build_record(line, self._map_captures(match.groupdict()))


def expand_grok(expression: str) -> tuple[str, dict[str, str]]:
    """Expand %{NAME:field:type} references into a regex.

    Returns the regex and the ``int`` / ``float`` types declared inline.
    """
    types: dict[str, str] = {}

    def _replace(m: re.Match) -> str:
        name = m.group("name")
        if name not in GROK_PATTERNS:
            raise InvalidArgument(f"unknown grok pattern: {name}")
        body = GROK_PATTERNS[name]
        field_name = m.group("field")
        if not field_name:
            return f"(?:{body})"
        if m.group("type"):
            types[field_name] = m.group("type")
        return f"(?P<{field_name}>{body})"

    return _GROK_RE.sub(_replace, expression), types


class GrokParser(RegexParser):
    type_name = "grok"

    def __init__(self, config: ParserConfig):
        if not config.pattern:
            raise InvalidArgument("grok parser requires a pattern")
        pattern, types = expand_grok(config.pattern)
        field_types = {**types, **config.field_types}
        super().__init__(ParserConfig(
            type=config.type,
            pattern=pattern,
            fields=config.fields,
            time_format=config.time_format,
            field_types=field_types,
            store_unparsed=config.store_unparsed,
        ))
        self.expression = config.pattern


class JSONParser(LineParser):
    type_name = "json"

    def _parse(self, line: str) -> Record:
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON: {e.msg}") from e
        if not isinstance(data, dict):
            raise ParseError("expected a JSON object")

        for name, target in self.config.fields.items():
            if name in data:
                data[target] = data.pop(name)

        values: dict[str, Any] = {}
        for attribute, keys in _JSON_KEYS.items():
            for key in keys:
                value = data.get(key)
                if value is None or value == "" or isinstance(value, (dict, list)):
                    continue
                values[attribute] = data.pop(key)
                break
        return self._build_record(line, values, extra=data)


class DelimitedParser(LineParser):
    type_name = "delimited"

    def __init__(self, config: ParserConfig):
        super().__init__(config)
        self._delimiter = config.pattern or ","
        if len(self._delimiter) != 1:
            raise InvalidArgument("delimited parser needs a single-character delimiter")
        for name in config.fields:
            if not name.isdigit():
                raise InvalidArgument(f"delimited column names must be indexes, got {name!r}")
        self._min_columns = max((int(name) + 1 for name in config.fields), default=0)

    def _parse(self, line: str) -> Record:
        try:
            columns = next(csv.reader([line], delimiter=self._delimiter, skipinitialspace=True))
        except csv.Error as e:
            raise ParseError(f"malformed delimited line: {e}") from e
        if len(columns) < self._min_columns:
            raise ParseError(f"expected at least {self._min_columns} columns, got {len(columns)}")
        captures = {str(i): value for i, value in enumerate(columns)}
        return self._build_record(line, self._map_captures(captures))


class PlainParser(LineParser):
    type_name = "plain"

    def _parse(self, line: str) -> Record:
        values: dict[str, Any] = {}
        message = line

        ts_match = _PLAIN_TIMESTAMP_RE.search(line)
        if ts_match:
            values["timestamp"] = ts_match.group(0)
            message = message.replace(ts_match.group(0), " ", 1)

        level_match = _PLAIN_LEVEL_RE.search(message)
        if level_match:
            values["level"] = level_match.group(1)
            message = message[:level_match.start()] + " " + message[level_match.end():]

        service_match = _PLAIN_SERVICE_RE.search(message)
        if service_match:
            values["service"] = service_match.group(1) or service_match.group(2)
            message = message[:service_match.start()] + " " + message[service_match.end():]

        message = _EMPTY_BRACKETS_RE.sub(" ", message)
        message = " ".join(message.split()).strip(" -:|")
        if message:
            values["message"] = message
        return self._build_record(line, values)


_PARSERS = {
    "plain": PlainParser,
    "json": JSONParser,
    "regex": RegexParser,
    "grok": GrokParser,
    "delimited": DelimitedParser,
}


def create_parser(config: ParserConfig) -> LineParser:
    """Validate a ParserConfig and build the matching parser."""
    parser_cls = _PARSERS.get(config.type)
    if parser_cls is None:
        raise InvalidArgument(f"unsupported parser type: {config.type}")
    return parser_cls(config)


def parse(raw_line: str, config: ParserConfig) -> Record:
    """Parse a single line. Raises ParseError if it cannot be stored."""
    return create_parser(config).parse(raw_line)


def detect_parser_type(sample: str) -> str:
    """Guess a parser type from the first non-empty line of a sample."""
    for line in sample.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("{"):
            try:
                if isinstance(json.loads(stripped), dict):
                    return "json"
            except json.JSONDecodeError:
                pass
        return "plain"
    return "plain"
