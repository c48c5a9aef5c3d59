"""
Time-mode contracts and pure helpers.

This module holds everything about time modes that does not need the
controller's mutable state:
- `TimeRange` and ISO-8601 parsing/validation
- `TimeModeState`, the immutable state snapshot owned by the controller
- refresh eligibility and cadence per mode
- presentation helpers (banner text, granularity, duration formatting)

All datetimes handled here are timezone-aware UTC. Naive inputs are
interpreted as UTC.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from alarm_console.domain.errors import InvalidTimeRangeError
from alarm_console.domain.models import TimeMode

LIVE_REFRESH_INTERVAL_S = 5.0
DEFAULT_SNAPSHOT_WINDOW = timedelta(minutes=30)

DateLike = Union[datetime, str]


class HistoricalPreset(str, Enum):
    """Quick-select ranges for historical replay."""

    LAST_1H = "1h"
    LAST_6H = "6h"
    LAST_24H = "24h"
    CUSTOM = "custom"


_PRESET_SPANS = {
    HistoricalPreset.LAST_1H: timedelta(hours=1),
    HistoricalPreset.LAST_6H: timedelta(hours=6),
    HistoricalPreset.LAST_24H: timedelta(hours=24),
}


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_iso_datetime(value: DateLike) -> datetime:
    """
    Parse an ISO-8601 datetime (or pass a datetime through).

    Parameters
    ----------
    value
        ISO-8601 string (a trailing ``Z`` is accepted) or datetime.

    Returns
    -------
    datetime
        Aware UTC datetime.

    Raises
    ------
    InvalidTimeRangeError
        If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimeRangeError(f"not an ISO-8601 datetime: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError as e:
        raise InvalidTimeRangeError(f"not an ISO-8601 datetime: {value!r}") from e


@dataclass(frozen=True)
class TimeRange:
    """
    Closed time window ``[start, end]`` with ``start < end`` strictly.

    Use :meth:`of` to build a validated range from strings or datetimes.
    """

    start: datetime
    end: datetime

    @classmethod
    def of(cls, start: DateLike, end: DateLike) -> "TimeRange":
        """
        Build a validated range.

        Raises
        ------
        InvalidTimeRangeError
            If either bound is unparsable or ``start >= end``.
        """
        s = parse_iso_datetime(start)
        e = parse_iso_datetime(end)
        if not s < e:
            raise InvalidTimeRangeError(f"range start must be before end: {s.isoformat()} >= {e.isoformat()}")
        return cls(start=s, end=e)

    @property
    def span(self) -> timedelta:
        return self.end - self.start

    def contains(self, ts: datetime) -> bool:
        return self.start <= ensure_utc(ts) <= self.end


def is_valid_snapshot_range(start: DateLike, end: DateLike) -> bool:
    """True when both bounds parse and ``start < end``."""
    try:
        TimeRange.of(start, end)
    except InvalidTimeRangeError:
        return False
    return True


def is_valid_historical_range(rng: TimeRange) -> bool:
    """True when ``start < end``."""
    return rng.start < rng.end


def preset_range(preset: HistoricalPreset, now: datetime) -> TimeRange:
    """
    Range covering the preset span and ending at ``now``.

    Raises
    ------
    InvalidTimeRangeError
        For ``CUSTOM``, which has no implied span.
    """
    span = _PRESET_SPANS.get(preset)
    if span is None:
        raise InvalidTimeRangeError("custom preset requires an explicit range")
    end = ensure_utc(now)
    return TimeRange(start=end - span, end=end)


@dataclass(frozen=True)
class TimeModeState:
    """
    Snapshot of the time-mode controller's state.

    Parameters
    ----------
    mode
        Current viewing mode.
    last_refresh
        Last successful refresh (or transition) instant, in the frame of the
        current mode.
    is_refreshing
        A refresh is in flight.
    is_paused
        Operator paused auto-refresh (live mode only).
    snapshot_range
        Frozen window when in snapshot mode.
    snapshot_captured_at
        Wall-clock instant captured on entering snapshot mode.
    historical_range
        Replay window when in historical mode.
    historical_preset
        Preset used to select the historical range.
    """

    mode: TimeMode
    last_refresh: datetime
    is_refreshing: bool = False
    is_paused: bool = False
    snapshot_range: Optional[TimeRange] = None
    snapshot_captured_at: Optional[datetime] = None
    historical_range: Optional[TimeRange] = None
    historical_preset: Optional[HistoricalPreset] = None

    @property
    def auto_refresh_allowed(self) -> bool:
        return is_auto_refresh_allowed(self.mode, self.is_paused)


def is_auto_refresh_allowed(mode: TimeMode, is_paused: bool) -> bool:
    """Auto-refresh runs only in live mode while not paused."""
    return mode == TimeMode.LIVE and not is_paused


def refresh_interval(mode: TimeMode, live_interval_s: float = LIVE_REFRESH_INTERVAL_S) -> Optional[float]:
    """
    Auto-refresh period for a mode.

    Returns
    -------
    float or None
        Seconds between ticks in live mode; None (disabled) otherwise.
    """
    return live_interval_s if mode == TimeMode.LIVE else None


def allows_live_duration_increment(mode: TimeMode) -> bool:
    return mode == TimeMode.LIVE


def should_lock_ui(mode: TimeMode) -> bool:
    """Snapshot mode freezes operator edits in the presentation layer."""
    return mode == TimeMode.SNAPSHOT


def mode_opacity_multiplier(mode: TimeMode) -> float:
    if mode == TimeMode.SNAPSHOT:
        return 0.85
    if mode == TimeMode.HISTORICAL:
        return 0.9
    return 1.0


def _fmt(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def mode_banner_text(state: TimeModeState) -> str:
    """
    One-line banner describing the current mode.

    Examples
    --------
    ``LIVE ● Ready``, ``SNAPSHOT — 2026-01-01 10:00:00 to 2026-01-01 10:30:00``,
    ``HISTORICAL — Last 6 hour``.
    """
    if state.mode == TimeMode.LIVE:
        if state.is_paused:
            return "LIVE ● Paused"
        return f"LIVE {'● Updating' if state.is_refreshing else '● Ready'}"
    if state.mode == TimeMode.SNAPSHOT:
        if state.snapshot_range is not None:
            return f"SNAPSHOT — {_fmt(state.snapshot_range.start)} to {_fmt(state.snapshot_range.end)}"
        return "SNAPSHOT"
    if state.historical_preset is not None and state.historical_preset != HistoricalPreset.CUSTOM:
        return f"HISTORICAL — Last {state.historical_preset.value.replace('h', ' hour')}"
    if state.historical_range is not None:
        return f"HISTORICAL — {_fmt(state.historical_range.start)} to {_fmt(state.historical_range.end)}"
    return "HISTORICAL"


def recommended_granularity(rng: TimeRange) -> str:
    """Chart bucket size suited to the range length."""
    days = math.ceil(rng.span.total_seconds() / 86400)
    if days <= 1:
        return "15m"
    if days <= 7:
        return "1h"
    return "1d"


def format_duration(delta: timedelta) -> str:
    """
    Compact human duration.

    ``< 1m``, ``42m``, ``3h``, ``3h 5m``, ``2d``, ``2d 4h``.
    """
    mins = int(max(timedelta(0), delta).total_seconds() // 60)
    if mins < 1:
        return "< 1m"
    if mins < 60:
        return f"{mins}m"
    hours, rem_mins = divmod(mins, 60)
    if hours < 24:
        return f"{hours}h {rem_mins}m" if rem_mins else f"{hours}h"
    days, rem_hours = divmod(hours, 24)
    return f"{days}d {rem_hours}h" if rem_hours else f"{days}d"
