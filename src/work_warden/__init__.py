"""Timeline and live counters reconstructed from work timecards."""

__version__ = "0.1.0"
