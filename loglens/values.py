"""Field values: the closed set of types a Record or filter operand may hold.

A value is one of ``str``, ``int``, ``float``, ``bool``, ``None``, a list of
values, or a string-keyed dict of values. Anything else is rejected at the
boundary by ``normalize_value``. Booleans are never treated as numbers.
"""

import math
from datetime import datetime, timezone
from typing import Any

from loglens.errors import InvalidArgument

SCALAR_TYPES = (str, int, float, bool, type(None))


def normalize_value(value: Any, path: str = "value") -> Any:
    """Validate a value recursively, returning it with tuples turned into lists."""
    if isinstance(value, SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        return [normalize_value(v, f"{path}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, dict):
        result = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise InvalidArgument(f"{path}: object keys must be strings")
            result[k] = normalize_value(v, f"{path}.{k}")
        return result
    raise InvalidArgument(f"{path}: unsupported value type {type(value).__name__}")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def as_number(value: Any) -> float | None:
    """Return value as a float if it is a real number, else None.

    Numeric strings are not converted here; callers that coerce operands do so
    explicitly with ``parse_number``.
    """
    if is_number(value) and not (isinstance(value, float) and math.isnan(value)):
        return float(value)
    return None


def parse_number(value: Any) -> float | None:
    """Like ``as_number`` but also accepts strings such as ``"42"`` or ``"1.5"``."""
    number = as_number(value)
    if number is not None:
        return number
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if math.isnan(number):
            return None
        return number
    return None


def sort_key(value: Any) -> tuple:
    """Total ordering across mixed value types: numbers, then strings, then bools, then the rest."""
    if is_number(value):
        return (0, float(value))
    if isinstance(value, str):
        return (1, value)
    if isinstance(value, bool):
        return (2, int(value))
    return (3, repr(value))


def to_epoch_ms(dt: datetime) -> int:
    """Naive datetimes are taken to be UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def now_ms() -> int:
    return to_epoch_ms(datetime.now(timezone.utc))


def parse_iso_timestamp(text: str) -> int | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into epoch ms."""
    candidate = text.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return to_epoch_ms(datetime.fromisoformat(candidate))
    except ValueError:
        return None
