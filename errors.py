"""Failure kinds of the clock core.

They are raised by the low-level parsers and caught at every public
operation, which logs them and hands back an empty / neutral result.
"""


class ClockError(Exception):
    pass


class InvalidTimezone(ClockError):
    """Unrecognized IANA timezone name."""


class InvalidTimeRange(ClockError):
    """Unparseable instant, or a range whose end precedes its start."""


class MalformedSessionBoundary(ClockError):
    """Session boundary that is not a valid ``HH:MM`` time of day."""


class SafetyCapExceeded(ClockError):
    """Day-sequence walk hit its iteration bound and was truncated."""
