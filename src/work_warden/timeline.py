"""Replay of a timecard event log into categorized timeline segments.

The replay is a left fold of :func:`replay_step` over the events. Every
category holds an anchor while it is open; stopping an open category emits a
candidate segment from its anchor to the stop time. Candidates shorter than
the configured minimum are treated as toggle noise and dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from .config import WardenSettings
from .errors import ReplayError
from .models import (
    MS_IN_DAY,
    Active,
    AggregateState,
    ClockIn,
    ClockOut,
    ClockType,
    Idle,
    Tasks,
    Timecard,
    TimecardEvent,
    ms_between,
    timedelta_to_ms,
)

logger = logging.getLogger(__name__)


class Category(str, Enum):
    WORK = "work"
    BREAK = "break"
    LUNCH = "lunch"
    IDLE_WORK = "idleWork"
    ACTIVE_NOT_WORK = "activeNotWork"


FINALIZE_ORDER = (
    Category.WORK,
    Category.BREAK,
    Category.LUNCH,
    Category.ACTIVE_NOT_WORK,
    Category.IDLE_WORK,
)

NOW_MARKER = "now"


@dataclass(frozen=True, slots=True)
class Segment:
    category: Category
    start: datetime
    duration: float

    @property
    def end(self) -> datetime:
        return self.start + timedelta(milliseconds=self.duration)


@dataclass(frozen=True, slots=True)
class ReplayState:
    """Open categories with their anchors, plus the idle flag."""

    anchors: Mapping[Category, datetime] = field(default_factory=dict)
    idle: bool = False

    def is_open(self, category: Category) -> bool:
        return category in self.anchors

    def start(self, category: Category, time: datetime) -> "ReplayState":
        if category in self.anchors:
            return self
        return ReplayState(anchors={**self.anchors, category: time}, idle=self.idle)

    def stop(
        self, category: Category, time: datetime
    ) -> tuple["ReplayState", Optional[Segment]]:
        anchor = self.anchors.get(category)
        if anchor is None:
            return self, None
        anchors = {key: value for key, value in self.anchors.items() if key is not category}
        segment = Segment(category=category, start=anchor, duration=ms_between(anchor, time))
        return ReplayState(anchors=anchors, idle=self.idle), segment

    def with_idle(self, idle: bool) -> "ReplayState":
        return ReplayState(anchors=self.anchors, idle=idle)


def initial_replay_state(initial: AggregateState, log_start: datetime) -> ReplayState:
    """Open the categories the log starts in, anchored at ``log_start``."""
    anchors: dict[Category, datetime] = {}
    if initial.working.is_open:
        anchors[Category.WORK] = log_start
    if initial.on_break.is_open:
        anchors[Category.BREAK] = log_start
    if initial.on_lunch.is_open:
        anchors[Category.LUNCH] = log_start

    working = Category.WORK in anchors
    paused = Category.BREAK in anchors or Category.LUNCH in anchors
    if working and initial.is_idle and not paused:
        anchors[Category.IDLE_WORK] = log_start
    if not working and not initial.is_idle:
        anchors[Category.ACTIVE_NOT_WORK] = log_start
    return ReplayState(anchors=anchors, idle=initial.is_idle)


def replay_step(
    state: ReplayState, event: TimecardEvent
) -> tuple[ReplayState, list[Segment]]:
    """Apply one event and return the new state and the segments it closed."""
    time = event.time
    emitted: list[Segment] = []

    def stop(current: ReplayState, category: Category) -> ReplayState:
        current, segment = current.stop(category, time)
        if segment is not None:
            emitted.append(segment)
        return current

    if isinstance(event, ClockIn):
        if event.clock is ClockType.DAY:
            if not state.is_open(Category.WORK):
                if state.is_open(Category.ACTIVE_NOT_WORK):
                    state = stop(state, Category.ACTIVE_NOT_WORK)
                else:
                    state = state.start(Category.IDLE_WORK, time)
            state = state.start(Category.WORK, time)
        elif event.clock is ClockType.BREAK:
            state = state.start(Category.BREAK, time)
            state = state.start(Category.WORK, time)
            state = stop(state, Category.LUNCH)
        elif event.clock is ClockType.LUNCH:
            state = state.start(Category.LUNCH, time)
            state = state.start(Category.WORK, time)
            state = stop(state, Category.BREAK)
        else:
            raise ReplayError(f"unsupported clock {event.clock!r} at {time.isoformat()}")
    elif isinstance(event, ClockOut):
        if event.clock is ClockType.DAY:
            if state.is_open(Category.WORK):
                if state.is_open(Category.IDLE_WORK):
                    state = stop(state, Category.IDLE_WORK)
                else:
                    state = state.start(Category.ACTIVE_NOT_WORK, time)
            for category in (Category.WORK, Category.BREAK, Category.LUNCH):
                state = stop(state, category)
        elif event.clock is ClockType.BREAK:
            state = stop(state, Category.BREAK)
        elif event.clock is ClockType.LUNCH:
            state = stop(state, Category.LUNCH)
        else:
            raise ReplayError(f"unsupported clock {event.clock!r} at {time.isoformat()}")
    elif isinstance(event, Active):
        state = state.with_idle(False)
    elif isinstance(event, Idle):
        state = state.with_idle(True)
    elif isinstance(event, Tasks):
        pass
    else:
        raise ReplayError(f"unsupported event {event!r}")

    # Derived categories follow work, pauses and the idle flag after every event.
    if not state.is_open(Category.WORK):
        if not state.idle:
            state = state.start(Category.ACTIVE_NOT_WORK, time)
        else:
            state = stop(state, Category.ACTIVE_NOT_WORK)
    else:
        paused = state.is_open(Category.BREAK) or state.is_open(Category.LUNCH)
        if state.idle and not paused:
            state = state.start(Category.IDLE_WORK, time)
        else:
            state = stop(state, Category.IDLE_WORK)

    return state, emitted


def finalize(state: ReplayState, now: datetime) -> tuple[ReplayState, list[Segment]]:
    """Close every still-open category at ``now``."""
    emitted: list[Segment] = []
    for category in FINALIZE_ORDER:
        state, segment = state.stop(category, now)
        if segment is not None:
            emitted.append(segment)
    return state, emitted


def admit(segment: Segment, min_duration: float) -> bool:
    return segment.duration >= min_duration


def day_start(instant: datetime) -> datetime:
    """Local midnight of the calendar day containing ``instant``."""
    return instant.astimezone().replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass(frozen=True, slots=True)
class Timeline:
    midnight: Optional[datetime]
    segments: tuple[Segment, ...]
    now: Optional[datetime] = None

    def offset(self, instant: datetime) -> float:
        """Position of ``instant`` as a fraction of one day after midnight."""
        if self.midnight is None:
            raise ValueError("an empty timeline has no reference midnight")
        return ms_between(self.midnight, instant) / MS_IN_DAY


@dataclass(frozen=True, slots=True)
class TimelineBand:
    kind: str
    left: float
    width: float
    start: datetime
    duration: float


def reconstruct_timeline(
    timecard: Timecard,
    *,
    now: Optional[datetime] = None,
    settings: Optional[WardenSettings] = None,
    log_start: Optional[datetime] = None,
) -> Timeline:
    """Rebuild the timeline segments of ``timecard``.

    With ``now`` the timeline is live: open categories are cut at ``now`` and
    the result carries a cursor position. ``log_start`` anchors categories the
    initial state already has open; it defaults to the first event's time.
    """
    settings = settings or WardenSettings()
    events = timecard.events
    if not events:
        return Timeline(midnight=None, segments=())

    check_chronological(events)
    min_duration = timedelta_to_ms(settings.min_segment)
    state = initial_replay_state(
        timecard.initial_state, log_start if log_start is not None else events[0].time
    )

    candidates: list[Segment] = []
    for event in events:
        state, emitted = replay_step(state, event)
        candidates.extend(emitted)
    if now is not None:
        state, emitted = finalize(state, now)
        candidates.extend(emitted)

    segments = tuple(_admitted(candidates, min_duration))
    logger.debug(
        "Replayed %d events into %d segments (%d dropped as noise).",
        len(events),
        len(segments),
        len(candidates) - len(segments),
    )
    return Timeline(midnight=day_start(events[0].time), segments=segments, now=now)


def check_chronological(events: Sequence[TimecardEvent]) -> None:
    previous: Optional[datetime] = None
    for index, event in enumerate(events):
        if previous is not None and event.time < previous:
            raise ReplayError(
                f"event #{index} at {event.time.isoformat()} precedes {previous.isoformat()}"
            )
        previous = event.time


def _admitted(candidates: Iterable[Segment], min_duration: float) -> Iterable[Segment]:
    for segment in candidates:
        if admit(segment, min_duration):
            yield segment
        else:
            logger.debug(
                "Dropping %s segment of %.0f ms at %s.",
                segment.category.value,
                segment.duration,
                segment.start.isoformat(),
            )


def layout_timeline(timeline: Timeline) -> list[TimelineBand]:
    """Horizontal positions of every segment, plus the cursor when live."""
    if timeline.midnight is None:
        return []
    bands = [
        TimelineBand(
            kind=segment.category.value,
            left=timeline.offset(segment.start),
            width=segment.duration / MS_IN_DAY,
            start=segment.start,
            duration=segment.duration,
        )
        for segment in timeline.segments
    ]
    if timeline.now is not None:
        bands.append(
            TimelineBand(
                kind=NOW_MARKER,
                left=timeline.offset(timeline.now),
                width=0.0,
                start=timeline.now,
                duration=0.0,
            )
        )
    return bands
