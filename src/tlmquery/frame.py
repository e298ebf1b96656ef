from __future__ import annotations

import numpy as np
import pandas as pd

from tlmquery.models import AggregatedResponse


def to_frame(response: AggregatedResponse) -> pd.DataFrame:
    """
    Wide, time-aligned view of a response.

    Index is the sorted union of every channel's time stamps; each channel
    column holds its value at that stamp, NaN where it has none. When a
    channel repeats a stamp the last value wins.
    """
    columns: dict[str, pd.Series] = {}
    for name, series in response.telemetry.items():
        s = pd.Series(
            [np.nan if v is None else v for v in series.data],
            index=pd.Index(series.time, dtype="object"),
            dtype="float64",
            name=name,
        )
        columns[name] = s[~s.index.duplicated(keep="last")]
    if not columns:
        return pd.DataFrame(index=pd.Index([], name="time", dtype="object"))
    df = pd.concat(list(columns.values()), axis=1, join="outer")
    df = df.sort_index()
    df.index.name = "time"
    return df
