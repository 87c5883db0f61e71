"""Conversion between the wire format of the state authority and domain models."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    ValidationError,
    model_validator,
)

from .errors import ParseError
from .models import (
    Active,
    AggregateState,
    ClockIn,
    ClockOut,
    ClockType,
    Idle,
    MultiTrackedInterval,
    Tasks,
    Timecard,
    TimecardEvent,
    TrackedInterval,
)

_ISO_INSTANT_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?)"
    r"(?:(?<=:\d{2}:\d{2})[.,](?P<fraction>\d+))?"
    r"(?P<offset>Z|z|[+-]\d{2}(?::?\d{2})?)?$"
)

_NANOS_PER_MS = 1_000_000
_NANOS_PER_SECOND = 1_000_000_000


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, rounding it to whole milliseconds.

    Seconds may be omitted, and offsets may be given as hours only (``+05``).
    A fraction is only accepted after the seconds field.
    """
    if not isinstance(value, str):
        raise ValueError(f"instant must be an ISO-8601 string, got {type(value).__name__}")
    match = _ISO_INSTANT_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"invalid ISO-8601 instant: {value!r}")

    offset = match.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"
    elif offset and ":" not in offset:
        offset = f"{offset[:3]}:{offset[3:] or '00'}"

    base = datetime.fromisoformat(match.group("base").replace(" ", "T") + (offset or ""))
    if base.tzinfo is None:
        base = base.astimezone()

    fraction = match.group("fraction")
    if fraction:
        millis = (Decimal(f"0.{fraction}") * 1000).to_integral_value(rounding=ROUND_HALF_UP)
        base += timedelta(milliseconds=int(millis))
    return base


def format_instant(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


Instant = Annotated[datetime, BeforeValidator(parse_instant)]


class WireDuration(BaseModel):
    seconds: StrictInt = Field(ge=0, validation_alias=AliasChoices("seconds", "secs"))
    nanoseconds: StrictInt = Field(
        ge=0,
        lt=_NANOS_PER_SECOND,
        validation_alias=AliasChoices("nanoseconds", "nanos"),
    )

    model_config = ConfigDict(extra="forbid")

    def to_ms(self) -> float:
        return self.seconds * 1000 + self.nanoseconds / 1e6


class WireTrackedInterval(BaseModel):
    since: Optional[Instant]
    accumulated: WireDuration

    model_config = ConfigDict(extra="forbid")


class WireMultiTrackedInterval(BaseModel):
    since: Optional[Tuple[Instant, List[StrictInt]]]
    accumulated: Dict[int, WireDuration]

    model_config = ConfigDict(extra="forbid")


class WireState(BaseModel):
    working: WireTrackedInterval
    onBreak: WireTrackedInterval
    onLunch: WireTrackedInterval
    idleWork: WireTrackedInterval
    isIdle: Optional[StrictBool] = None
    activeUntil: Optional[Instant] = None
    tasks: WireMultiTrackedInterval

    @model_validator(mode="after")
    def _check_idle_signal(self) -> "WireState":
        if "isIdle" in self.model_fields_set:
            if self.isIdle is None:
                raise ValueError("isIdle must be a boolean")
        elif "activeUntil" not in self.model_fields_set:
            raise ValueError("state requires either isIdle or activeUntil")
        return self

    def idle_flag(self) -> bool:
        if "isIdle" in self.model_fields_set:
            return bool(self.isIdle)
        # An activity deadline means the user is active; none means idle.
        return self.activeUntil is None


class WireClockIn(BaseModel):
    type: Literal["ClockIn"]
    time: Instant
    clock: ClockType


class WireClockOut(BaseModel):
    type: Literal["ClockOut"]
    time: Instant
    clock: ClockType


class WireActive(BaseModel):
    type: Literal["Active"]
    time: Instant


class WireIdle(BaseModel):
    type: Literal["Idle"]
    time: Instant


class WireTasks(BaseModel):
    type: Literal["Tasks"]
    time: Instant
    tasks: List[StrictInt] = Field(validation_alias=AliasChoices("tasks", "ids"))


WireEvent = Annotated[
    Union[WireClockIn, WireClockOut, WireActive, WireIdle, WireTasks],
    Field(discriminator="type"),
]


class WireTimecard(BaseModel):
    initialState: WireState
    currentState: WireState
    events: List[WireEvent]


def parse_timecard(raw: Union[str, bytes, Dict[str, Any]]) -> Timecard:
    """Build a :class:`Timecard` from a wire payload or its JSON text.

    Any malformed piece fails the whole parse with :class:`ParseError`.
    """
    try:
        if isinstance(raw, (str, bytes, bytearray)):
            wire = WireTimecard.model_validate_json(raw)
        else:
            wire = WireTimecard.model_validate(raw)
    except ValidationError as exc:
        raise ParseError(f"invalid timecard: {exc}") from exc

    return Timecard(
        initial_state=_state_from_wire(wire.initialState),
        current_state=_state_from_wire(wire.currentState),
        events=tuple(_event_from_wire(event) for event in wire.events),
    )


def load_timecard(path: Path) -> Timecard:
    """Read and parse a timecard log written by the state authority."""
    return parse_timecard(Path(path).read_bytes())


def _state_from_wire(wire: WireState) -> AggregateState:
    return AggregateState(
        working=_interval_from_wire(wire.working),
        on_break=_interval_from_wire(wire.onBreak),
        on_lunch=_interval_from_wire(wire.onLunch),
        idle_work=_interval_from_wire(wire.idleWork),
        is_idle=wire.idle_flag(),
        tasks=_multi_interval_from_wire(wire.tasks),
    )


def _interval_from_wire(wire: WireTrackedInterval) -> TrackedInterval:
    return TrackedInterval(since=wire.since, accumulated=wire.accumulated.to_ms())


def _multi_interval_from_wire(wire: WireMultiTrackedInterval) -> MultiTrackedInterval:
    since = None
    if wire.since is not None:
        instant, members = wire.since
        since = (instant, tuple(members))
    return MultiTrackedInterval(
        since=since,
        accumulated={member: duration.to_ms() for member, duration in wire.accumulated.items()},
    )


def _event_from_wire(wire: Any) -> TimecardEvent:
    if isinstance(wire, WireClockIn):
        return ClockIn(time=wire.time, clock=wire.clock)
    if isinstance(wire, WireClockOut):
        return ClockOut(time=wire.time, clock=wire.clock)
    if isinstance(wire, WireActive):
        return Active(time=wire.time)
    if isinstance(wire, WireIdle):
        return Idle(time=wire.time)
    if isinstance(wire, WireTasks):
        return Tasks(time=wire.time, ids=tuple(wire.tasks))
    raise ParseError(f"unsupported event: {wire!r}")


def dump_timecard(timecard: Timecard) -> Dict[str, Any]:
    """Serialize a timecard back into the canonical wire shape."""
    return {
        "initialState": dump_state(timecard.initial_state),
        "currentState": dump_state(timecard.current_state),
        "events": [dump_event(event) for event in timecard.events],
    }


def dump_state(state: AggregateState) -> Dict[str, Any]:
    tasks_since = None
    if state.tasks.since is not None:
        instant, members = state.tasks.since
        tasks_since = [format_instant(instant), list(members)]
    return {
        "working": _dump_interval(state.working),
        "onBreak": _dump_interval(state.on_break),
        "onLunch": _dump_interval(state.on_lunch),
        "idleWork": _dump_interval(state.idle_work),
        "isIdle": state.is_idle,
        "tasks": {
            "since": tasks_since,
            "accumulated": {
                str(member): dump_duration(ms) for member, ms in state.tasks.accumulated.items()
            },
        },
    }


def dump_event(event: TimecardEvent) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "type": type(event).__name__,
        "time": format_instant(event.time),
    }
    if isinstance(event, (ClockIn, ClockOut)):
        payload["clock"] = event.clock.value
    elif isinstance(event, Tasks):
        payload["tasks"] = list(event.ids)
    return payload


def dump_duration(ms: float) -> Dict[str, int]:
    seconds, nanoseconds = divmod(round(ms * _NANOS_PER_MS), _NANOS_PER_SECOND)
    return {"seconds": int(seconds), "nanoseconds": int(nanoseconds)}


def _dump_interval(interval: TrackedInterval) -> Dict[str, Any]:
    return {
        "since": format_instant(interval.since) if interval.since is not None else None,
        "accumulated": dump_duration(interval.accumulated),
    }
