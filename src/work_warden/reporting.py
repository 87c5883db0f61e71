"""Console rendering of timecard counters and timelines."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .aggregation import summarize, task_shares
from .config import WardenSettings
from .models import MS_IN_DAY, MS_IN_HOUR, MS_IN_MINUTE, MS_IN_SECOND, MS_IN_WEEK, Timecard
from .timeline import reconstruct_timeline

_UNITS = (
    ("w", MS_IN_WEEK),
    ("d", MS_IN_DAY),
    ("h", MS_IN_HOUR),
    ("m", MS_IN_MINUTE),
    ("s", MS_IN_SECOND),
)


class SummaryPrinter:
    """Render human-readable views of a timecard in the console."""

    def __init__(self, timecard: Timecard, settings: Optional[WardenSettings] = None) -> None:
        self.timecard = timecard
        self.settings = settings or WardenSettings()

    def print_summary(self, now: datetime) -> None:
        summary = summarize(self.timecard.current_state, now)
        remaining = summary.remaining(self.settings)
        print(f"Summary as of {now.strftime('%Y-%m-%d %H:%M:%S')}")
        print("-" * 40)
        print(f"Work:  {format_duration(summary.work):<12} left {format_duration(remaining['work'])}")
        print(f"Break: {format_duration(summary.break_):<12} left {format_duration(remaining['break'])}")
        print(f"Lunch: {format_duration(summary.lunch):<12} left {format_duration(remaining['lunch'])}")
        print(f"Idle:  {format_duration(summary.idle)}")

    def print_tasks(self, now: datetime) -> None:
        shares = task_shares(self.timecard.current_state.tasks, now)
        if not shares:
            print("No time logged to tasks.")
            return
        active = set(self.timecard.current_state.tasks.active_members)
        print("Tasks:")
        for member, ms in sorted(shares.items(), key=lambda item: item[1], reverse=True):
            marker = "*" if member in active else " "
            print(f" {marker} #{member:<8} {format_duration(ms)}")

    def print_timeline(self, now: Optional[datetime] = None) -> None:
        timeline = reconstruct_timeline(self.timecard, now=now, settings=self.settings)
        if not timeline.segments:
            print("No timeline segments recorded.")
            return
        for segment in timeline.segments:
            print(
                f"  {segment.category.value:<14} "
                f"{segment.start.strftime('%H:%M')}-{segment.end.strftime('%H:%M')} "
                f"{format_duration(segment.duration)}"
            )
        if timeline.now is not None:
            print(f"  {'now':<14} {timeline.now.strftime('%H:%M')}")


def format_duration(ms: float) -> str:
    """Compact rendering such as ``1h2m3s``; negative values get a sign."""
    if ms < 0:
        return "-" + format_duration(-ms)
    if ms == 0:
        return "0s"
    if ms < 0.001:
        return f"{round(ms * 1_000_000)}ns"
    if ms < 1:
        return f"{round(ms * 1_000)}μs"
    if ms < MS_IN_SECOND:
        return f"{round(ms)}ms"

    remaining = ms
    output = ""
    for suffix, unit in _UNITS:
        if remaining >= unit:
            count, remaining = divmod(remaining, unit)
            output += f"{int(count)}{suffix}"
    return output
