"""Domain models for timecards and the intervals they track."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Mapping, Optional, Union

MS_IN_SECOND = 1000
MS_IN_MINUTE = MS_IN_SECOND * 60
MS_IN_HOUR = MS_IN_MINUTE * 60
MS_IN_DAY = MS_IN_HOUR * 24
MS_IN_WEEK = MS_IN_DAY * 7

_ONE_MS = timedelta(milliseconds=1)


def ms_between(start: datetime, end: datetime) -> float:
    """Milliseconds elapsed from ``start`` to ``end`` (negative if reversed)."""
    return (end - start) / _ONE_MS


def timedelta_to_ms(value: timedelta) -> float:
    return value / _ONE_MS


class ClockType(str, Enum):
    DAY = "Day"
    BREAK = "Break"
    LUNCH = "Lunch"


@dataclass(frozen=True, slots=True)
class TrackedInterval:
    """A span that is either closed or open since ``since``.

    ``accumulated`` never includes the currently open span.
    """

    since: Optional[datetime] = None
    accumulated: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.since is not None

    def elapsed(self, now: datetime) -> float:
        if self.since is None:
            return self.accumulated
        return self.accumulated + ms_between(self.since, now)


@dataclass(frozen=True, slots=True)
class MultiTrackedInterval:
    """A tracked interval shared by several concurrently active members.

    While open, the live span is not attributed to anyone yet; it is split
    evenly across ``active_members`` when queried.
    """

    since: Optional[tuple[datetime, tuple[int, ...]]] = None
    accumulated: Mapping[int, float] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.since is not None

    @property
    def active_members(self) -> tuple[int, ...]:
        if self.since is None:
            return ()
        return self.since[1]


@dataclass(frozen=True, slots=True)
class AggregateState:
    working: TrackedInterval = TrackedInterval()
    on_break: TrackedInterval = TrackedInterval()
    on_lunch: TrackedInterval = TrackedInterval()
    idle_work: TrackedInterval = TrackedInterval()
    is_idle: bool = False
    tasks: MultiTrackedInterval = MultiTrackedInterval()


@dataclass(frozen=True, slots=True)
class ClockIn:
    time: datetime
    clock: ClockType


@dataclass(frozen=True, slots=True)
class ClockOut:
    time: datetime
    clock: ClockType


@dataclass(frozen=True, slots=True)
class Active:
    time: datetime


@dataclass(frozen=True, slots=True)
class Idle:
    time: datetime


@dataclass(frozen=True, slots=True)
class Tasks:
    time: datetime
    ids: tuple[int, ...] = ()


TimecardEvent = Union[ClockIn, ClockOut, Active, Idle, Tasks]


@dataclass(frozen=True, slots=True)
class Timecard:
    """Snapshot pushed by the state authority.

    ``current_state`` drives live counters; ``initial_state`` and ``events``
    drive the timeline. Neither is recomputed from the other.
    """

    initial_state: AggregateState = AggregateState()
    current_state: AggregateState = AggregateState()
    events: tuple[TimecardEvent, ...] = ()
