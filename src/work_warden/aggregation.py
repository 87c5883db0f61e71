"""Live counters computed from the authoritative aggregate state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from .config import WardenSettings
from .models import AggregateState, MultiTrackedInterval, TrackedInterval, ms_between, timedelta_to_ms

ADD = 1
SUBTRACT = -1


def compute_elapsed(
    intervals: Iterable[tuple[TrackedInterval, int]], now: datetime
) -> float:
    """Sum signed interval totals as of ``now``.

    Signs let callers combine intervals, e.g. working time minus lunch.
    Nothing stops a poor combination from going negative.
    """
    return sum(sign * interval.elapsed(now) for interval, sign in intervals)


def split_live_span(
    since: datetime,
    active_members: Sequence[int],
    accumulated: Mapping[int, float],
    member_id: int,
    now: datetime,
) -> Optional[float]:
    """Closed contribution of ``member_id`` plus its even share of the open span."""
    closed = accumulated.get(member_id)
    if member_id not in active_members:
        return closed
    share = ms_between(since, now) / len(active_members)
    return (closed or 0.0) + share


def share_of(
    tasks: MultiTrackedInterval, member_id: int, now: datetime
) -> Optional[float]:
    """Time attributed to one task, or ``None`` if it was never logged."""
    if tasks.since is None:
        return tasks.accumulated.get(member_id)
    since, active = tasks.since
    return split_live_span(since, active, tasks.accumulated, member_id, now)


def task_shares(tasks: MultiTrackedInterval, now: datetime) -> dict[int, float]:
    members = list(tasks.accumulated)
    members.extend(member for member in tasks.active_members if member not in tasks.accumulated)
    shares: dict[int, float] = {}
    for member in members:
        share = share_of(tasks, member, now)
        if share is not None:
            shares[member] = share
    return shares


@dataclass(frozen=True, slots=True)
class TimeSummary:
    """Per-category totals shown by the live counters, in milliseconds."""

    work: float
    break_: float
    lunch: float
    idle: float
    live: bool

    def remaining(self, settings: WardenSettings) -> dict[str, float]:
        return {
            "work": timedelta_to_ms(settings.work_target) - self.work,
            "break": timedelta_to_ms(settings.break_target) - self.break_,
            "lunch": timedelta_to_ms(settings.lunch_target) - self.lunch,
        }


def summarize(state: AggregateState, now: datetime) -> TimeSummary:
    return TimeSummary(
        # Lunch is clocked inside the working span, so it is taken back out.
        work=compute_elapsed([(state.working, ADD), (state.on_lunch, SUBTRACT)], now),
        break_=compute_elapsed([(state.on_break, ADD)], now),
        lunch=compute_elapsed([(state.on_lunch, ADD)], now),
        idle=compute_elapsed([(state.idle_work, ADD)], now),
        live=any(
            interval.is_open
            for interval in (state.working, state.on_break, state.on_lunch, state.idle_work)
        ),
    )
