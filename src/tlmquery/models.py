from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Generic, Literal, TypeVar, Union

from tlmquery.errors import InvalidRequest, TlmQueryError
from tlmquery.util.time import as_datetime

Mode = Literal["orbit", "ground"]

# Validated row value: number, null, or timestamp text.
Value = Union[int, float, str, None]
Row = dict[str, Value]

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: TlmQueryError
    source: str = ""

    @property
    def reason(self) -> str:
        return str(self.error) or type(self.error).__name__

    @property
    def message(self) -> str:
        if self.source:
            return f"{self.source}: {self.reason}"
        return self.reason


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class TelemetryGroup:
    """A physical table (by numeric id) plus the channels requested from it."""

    table_id: int
    channels: tuple[str, ...]

    def __post_init__(self) -> None:
        chans = tuple(str(c) for c in self.channels)
        if not chans:
            raise InvalidRequest(f"TelemetryGroup {self.table_id} has no channels.")
        if any(not c.strip() for c in chans):
            raise InvalidRequest("Channel names must be non-empty strings.")
        if len(set(chans)) != len(chans):
            raise InvalidRequest(f"Duplicate channel names in TelemetryGroup {self.table_id}.")
        object.__setattr__(self, "channels", chans)


@dataclass(frozen=True)
class DateRange:
    """Inclusive start/end instants; bare dates are taken as local midnight."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        s = as_datetime(self.start)
        e = as_datetime(self.end)
        if (s.tzinfo is None) != (e.tzinfo is None):
            raise InvalidRequest("DateRange start/end must both be naive or both be aware.")
        if s > e:
            raise InvalidRequest(f"DateRange start {s} is after end {e}.")
        object.__setattr__(self, "start", s)
        object.__setattr__(self, "end", e)

    @classmethod
    def of(cls, start: date | datetime, end: date | datetime) -> "DateRange":
        return cls(start=as_datetime(start), end=as_datetime(end))


@dataclass(frozen=True)
class TelemetryRequest:
    project: str
    mode: Mode
    groups: tuple[TelemetryGroup, ...]
    stored: bool = False
    use_test_cases: bool = False
    date_range: DateRange | None = None
    test_cases: tuple[str, ...] = ()
    orbit_dataset: str = ""
    ground_test_path: str = ""

    def __post_init__(self) -> None:
        if self.mode not in ("orbit", "ground"):
            raise InvalidRequest(f"Unknown mode: {self.mode!r}")
        groups = tuple(self.groups)
        if not groups:
            raise InvalidRequest("Request has no telemetry groups.")
        ids = [g.table_id for g in groups]
        if len(set(ids)) != len(ids):
            raise InvalidRequest("TelemetryGroup table ids must be unique within a request.")
        object.__setattr__(self, "groups", groups)
        object.__setattr__(self, "test_cases", tuple(str(t) for t in self.test_cases))

        if self.mode == "orbit":
            if self.use_test_cases:
                raise InvalidRequest("Test-case selection is only available for the ground source.")
            if not self.orbit_dataset:
                raise InvalidRequest("Orbit requests need an orbit_dataset.")
        if self.use_test_cases:
            if not self.test_cases:
                raise InvalidRequest("Test-case selection is active but no test cases were given.")
        elif self.date_range is None:
            raise InvalidRequest("Date-range selection is active but no date_range was given.")

    @property
    def channels(self) -> list[str]:
        """All requested channels, in request order, first occurrence wins."""
        out: list[str] = []
        seen: set[str] = set()
        for g in self.groups:
            for c in g.channels:
                if c not in seen:
                    seen.add(c)
                    out.append(c)
        return out


@dataclass(frozen=True)
class SourceDescriptor:
    mode: Mode
    locators: tuple[str, ...]
    stored: bool


@dataclass(frozen=True)
class ColumnProbeResult:
    path: str
    table: str
    existing: tuple[str, ...]
    missing: tuple[str, ...]


@dataclass(frozen=True)
class QueryPlan:
    """Synthesized query text bound to one physical source."""

    source: str
    text: str
    missing: tuple[str, ...] = ()


@dataclass
class ColumnarFrame:
    time: list[str] = field(default_factory=list)
    columns: dict[str, list[Value]] = field(default_factory=dict)
    calibrated_time: list[str] | None = None
    backfilled: frozenset[str] = frozenset()

    def __len__(self) -> int:
        return len(self.time)


@dataclass
class ChannelSeries:
    time: list[str] = field(default_factory=list)
    data: list[Value] = field(default_factory=list)


@dataclass
class AggregatedResponse:
    success: bool = False
    telemetry: dict[str, ChannelSeries] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": bool(self.success),
            "telemetry": {k: {"time": list(v.time), "data": list(v.data)} for k, v in self.telemetry.items()},
            "errors": list(self.errors),
        }

    @classmethod
    def timeout(cls) -> "AggregatedResponse":
        return cls(success=False, telemetry={}, errors=["Timeout Error"])
