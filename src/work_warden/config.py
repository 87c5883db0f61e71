"""Configuration models for the timecard views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class WardenSettings:
    """Tunables for timeline filtering, refresh cadence and daily targets."""

    min_segment: timedelta = timedelta(minutes=5)
    counter_refresh: timedelta = timedelta(seconds=1)
    timeline_refresh: timedelta = timedelta(minutes=1)
    work_target: timedelta = timedelta(hours=8)
    break_target: timedelta = timedelta(minutes=30)
    lunch_target: timedelta = timedelta(hours=1)

    @classmethod
    def from_minutes(
        cls,
        min_segment_minutes: float = 5.0,
        work_target_hours: float | None = None,
        break_target_minutes: float | None = None,
        lunch_target_minutes: float | None = None,
    ) -> "WardenSettings":
        defaults = cls()
        return cls(
            min_segment=timedelta(minutes=min_segment_minutes),
            work_target=(
                timedelta(hours=work_target_hours)
                if work_target_hours is not None
                else defaults.work_target
            ),
            break_target=(
                timedelta(minutes=break_target_minutes)
                if break_target_minutes is not None
                else defaults.break_target
            ),
            lunch_target=(
                timedelta(minutes=lunch_target_minutes)
                if lunch_target_minutes is not None
                else defaults.lunch_target
            ),
        )
