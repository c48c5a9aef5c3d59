"""Exception types raised by the console core."""

from __future__ import annotations

from typing import Optional


class AlarmConsoleError(Exception):
    """Base class for console errors."""


class MalformedAlarmError(AlarmConsoleError, ValueError):
    """
    An ingestion record cannot be turned into a valid Alarm.

    Parameters
    ----------
    reason
        Why the record was rejected.
    record_id
        Global alarm id of the record, when it had one.
    """

    def __init__(self, reason: str, record_id: Optional[str] = None):
        super().__init__(reason if record_id is None else f"{record_id}: {reason}")
        self.reason = reason
        self.record_id = record_id


class InvalidTimeRangeError(AlarmConsoleError, ValueError):
    """Time range is unparsable or does not satisfy start < end."""


class EmptyCommentError(AlarmConsoleError, ValueError):
    """Comment text is empty or whitespace only."""


class InvalidFilterError(AlarmConsoleError, ValueError):
    """Filter configuration is contradictory or names an unknown dimension."""


class TimeModeError(AlarmConsoleError):
    """Operation is not allowed in the current time mode."""
