"""Exceptions raised by the timecard core."""

from __future__ import annotations


class TimecardError(Exception):
    """Base class for timecard failures."""


class ParseError(TimecardError, ValueError):
    """A serialized timecard could not be turned into domain values."""


class ReplayError(TimecardError):
    """The event log could not be replayed into a timeline."""
