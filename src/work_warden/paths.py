"""Helpers for locating the timecard logs written by the state authority."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs


APP_NAME = "work-warden"
APP_AUTHOR = "WorkWarden"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logs_dir() -> Path:
    path = get_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def log_filename(day: date) -> str:
    return f"{day.year}-{day.month}-{day.day}.log.json"


def get_log_path(day: Optional[date] = None) -> Path:
    """Timecard log for ``day`` (today by default)."""
    return get_logs_dir() / log_filename(day or date.today())
