"""
Row value contract shared by both backends.

Every field of a returned row must be a number, null, or timestamp text.
Backend-native timestamp objects are normalized to the text form of their
source before anything downstream looks at them.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from tlmquery.errors import MalformedRowSchema
from tlmquery.models import Mode, Row, Value
from tlmquery.util.time import iso_millis_utc

ORBIT_TIME_RE = re.compile(
    r"^[0-9]{4}-(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])T([01][0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]\.[0-9]{3}Z"
)
GROUND_TIME_RE = re.compile(
    r"^[0-9]{4}-(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01]) ([01][0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]"
)


def time_pattern(mode: Mode) -> re.Pattern[str]:
    return ORBIT_TIME_RE if mode == "orbit" else GROUND_TIME_RE


def is_time_text(value: Any, mode: Mode) -> bool:
    return isinstance(value, str) and bool(time_pattern(mode).match(value))


def normalize_value(value: Any, *, mode: Mode) -> Value:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        if mode == "orbit":
            return iso_millis_utc(value)
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping) and isinstance(value.get("value"), str):
        # JSON-shaped warehouse timestamps: {"value": "2022-04-28T00:00:00.000Z"}
        return value["value"]
    raise MalformedRowSchema(f"unsupported value type {type(value).__name__}")


def validate_rows(rows: Iterable[Any], *, mode: Mode) -> list[Row]:
    """Validate and normalize a backend row-set; the first bad field fails the whole set."""
    out: list[Row] = []
    for i, row in enumerate(rows):
        if isinstance(row, Mapping):
            items = row.items()
        elif hasattr(row, "items"):
            items = row.items()
        else:
            raise MalformedRowSchema(f"row {i}: expected a field mapping, got {type(row).__name__}")
        rec: Row = {}
        for key, value in items:
            try:
                rec[str(key)] = normalize_value(value, mode=mode)
            except MalformedRowSchema as e:
                raise MalformedRowSchema(f"row {i}, field {key!r}: {e}") from e
        out.append(rec)
    return out
