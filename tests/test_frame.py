from __future__ import annotations

import math

from tlmquery.frame import to_frame
from tlmquery.models import AggregatedResponse, ChannelSeries


def test_to_frame_aligns_channels_on_time() -> None:
    resp = AggregatedResponse(
        success=True,
        telemetry={
            "V": ChannelSeries(time=["t2", "t1"], data=[2.0, 1.0]),
            "I": ChannelSeries(time=["t1", "t3", "t3"], data=[None, 0.5, 0.6]),
        },
    )
    df = to_frame(resp)
    assert df.index.name == "time"
    assert list(df.index) == ["t1", "t2", "t3"]
    assert list(df.columns) == ["V", "I"]
    assert df.loc["t2", "V"] == 2.0
    assert math.isnan(df.loc["t1", "I"])
    assert df.loc["t3", "I"] == 0.6


def test_to_frame_empty() -> None:
    df = to_frame(AggregatedResponse.timeout())
    assert df.empty
    assert df.index.name == "time"
