from __future__ import annotations

from typing import Sequence

from tlmquery.errors import NoTimeColumn
from tlmquery.models import ColumnarFrame, Err, Mode, Ok, Result, Row, Value
from tlmquery.rows import is_time_text

ORBIT_TIME_SUFFIX = "_OBCTimeUTC"
ORBIT_CALIBRATED_SUFFIX = "_CalibratedOBCTimeUTC"
GROUND_TIME_SUFFIX = "_DATE"


def is_time_field(name: str, mode: Mode) -> bool:
    if mode == "orbit":
        return name.endswith(ORBIT_TIME_SUFFIX) or name.endswith(ORBIT_CALIBRATED_SUFFIX)
    return name.endswith(GROUND_TIME_SUFFIX)


def _pick_time(row: Row, keys: Sequence[str], mode: Mode) -> str | None:
    # First non-null candidate decides; a malformed one drops the row.
    for k in keys:
        v = row.get(k)
        if v is None:
            continue
        return v if is_time_text(v, mode) else None
    return None


def _data_value(v: Value) -> Value:
    if isinstance(v, str):
        return None
    return v


def transpose(rows: Sequence[Row], missing: Sequence[str] = (), *, mode: Mode) -> Result[ColumnarFrame]:
    """
    Turn a row-set into one array per field.

    Rows without a well-formed time value are dropped; every kept row appends
    to every data column (None when the row lacks the field), so all arrays
    stay as long as the time axis. `missing` columns are backfilled with None.
    """
    fields: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for k in row:
            if k not in seen:
                seen.add(k)
                fields.append(k)

    time_fields = [k for k in fields if is_time_field(k, mode)]
    if rows and not time_fields:
        return Err(NoTimeColumn(f"No time column in result (fields: {', '.join(fields[:8])})"))

    if mode == "orbit":
        raw_keys = [k for k in time_fields if k.endswith(ORBIT_TIME_SUFFIX)]
        cal_keys = [k for k in time_fields if k.endswith(ORBIT_CALIBRATED_SUFFIX)]
    else:
        raw_keys = list(time_fields)
        cal_keys = []

    data_fields = [k for k in fields if k not in time_fields]
    backfilled = [k for k in dict.fromkeys(missing) if k not in seen]
    frame = ColumnarFrame(
        time=[],
        columns={k: [] for k in [*data_fields, *backfilled]},
        calibrated_time=[] if mode == "orbit" else None,
        backfilled=frozenset(backfilled),
    )

    for row in rows:
        t = _pick_time(row, raw_keys, mode)
        if t is None:
            continue
        if mode == "orbit":
            cal = _pick_time(row, cal_keys, mode)
            if cal is None:
                continue
            frame.calibrated_time.append(cal)  # type: ignore[union-attr]
        frame.time.append(t)
        for k in data_fields:
            frame.columns[k].append(_data_value(row.get(k)))
        for k in backfilled:
            frame.columns[k].append(None)

    return Ok(frame)
