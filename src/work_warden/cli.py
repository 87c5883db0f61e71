"""Command-line interface for the timecard views."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .config import WardenSettings
from .errors import ParseError, ReplayError
from .models import Timecard
from .parsing import load_timecard
from .paths import get_log_path
from .refresh import PeriodicRefresh
from .reporting import SummaryPrinter

logger = logging.getLogger(__name__)

app = typer.Typer(help="Live counters and timeline for work timecards.")

_FILE_OPTION_HELP = "Timecard log to read. Defaults to today's log."


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def summary(
    file: Optional[Path] = typer.Option(None, "--file", "-f", path_type=Path, help=_FILE_OPTION_HELP),
    work_hours: float = typer.Option(8.0, "--work-target", min=0.0, help="Daily work target in hours."),
) -> None:
    """Print live totals for work, break, lunch and idle time."""
    settings = WardenSettings.from_minutes(work_target_hours=work_hours)
    printer = SummaryPrinter(load_timecard(file or get_log_path()), settings)
    printer.print_summary(datetime.now().astimezone())


@app.command()
def tasks(
    file: Optional[Path] = typer.Option(None, "--file", "-f", path_type=Path, help=_FILE_OPTION_HELP),
) -> None:
    """Print the time attributed to each logged task."""
    printer = SummaryPrinter(load_timecard(file or get_log_path()))
    printer.print_tasks(datetime.now().astimezone())


@app.command()
def timeline(
    file: Optional[Path] = typer.Option(None, "--file", "-f", path_type=Path, help=_FILE_OPTION_HELP),
    closed: bool = typer.Option(
        False, "--closed", help="Treat the log as a finished day instead of cutting it at now."
    ),
    min_segment: float = typer.Option(
        5.0, "--min-segment", min=0.0, help="Minutes below which segments count as noise."
    ),
) -> None:
    """Print the categorized timeline segments of a timecard."""
    settings = WardenSettings.from_minutes(min_segment_minutes=min_segment)
    printer = SummaryPrinter(load_timecard(file or get_log_path()), settings)
    printer.print_timeline(None if closed else datetime.now().astimezone())


@app.command()
def watch(
    file: Optional[Path] = typer.Option(None, "--file", "-f", path_type=Path, help=_FILE_OPTION_HELP),
) -> None:
    """Keep counters and the timeline up to date until interrupted."""
    path = file or get_log_path()
    settings = WardenSettings()
    view = _LiveView(path, settings)

    counters = PeriodicRefresh("counters", settings.counter_refresh, view.show_counters)
    timeline_refresh = PeriodicRefresh("timeline", settings.timeline_refresh, view.show_timeline)
    with counters, timeline_refresh:
        try:
            while True:
                time.sleep(1.0)
        except KeyboardInterrupt:
            logger.info("Watch interrupted.")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard to."),
    port: int = typer.Option(8766, "--port", help="Port for the dashboard."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", path_type=Path, help=_FILE_OPTION_HELP),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Launch the API docs in a browser once the server starts.",
    ),
) -> None:
    """Serve the live counters and timeline over HTTP."""
    from .server_runner import run_dashboard

    run_dashboard(
        host=host,
        port=port,
        timecard_path=file or get_log_path(),
        open_browser=open_browser,
    )


class _LiveView:
    """Re-reads the timecard on every tick; a failed read keeps the last snapshot."""

    def __init__(self, path: Path, settings: WardenSettings) -> None:
        self.path = path
        self.settings = settings
        self._timecard: Optional[Timecard] = None

    def _snapshot(self) -> Optional[Timecard]:
        try:
            self._timecard = load_timecard(self.path)
        except (OSError, ParseError):
            logger.exception("Could not read %s; keeping the previous snapshot.", self.path)
        return self._timecard

    def show_counters(self) -> None:
        timecard = self._snapshot()
        if timecard is not None:
            SummaryPrinter(timecard, self.settings).print_summary(datetime.now().astimezone())

    def show_timeline(self) -> None:
        timecard = self._snapshot()
        if timecard is not None:
            try:
                SummaryPrinter(timecard, self.settings).print_timeline(datetime.now().astimezone())
            except ReplayError:
                logger.exception("Could not rebuild the timeline from %s.", self.path)


if __name__ == "__main__":
    app()
