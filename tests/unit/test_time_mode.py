"""
Unit tests for the pure time-mode helpers in alarm_console.core.time_mode.time_mode.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from alarm_console.core.time_mode.time_mode import (
    HistoricalPreset,
    TimeModeState,
    TimeRange,
    allows_live_duration_increment,
    format_duration,
    is_auto_refresh_allowed,
    is_valid_historical_range,
    is_valid_snapshot_range,
    mode_banner_text,
    mode_opacity_multiplier,
    parse_iso_datetime,
    preset_range,
    recommended_granularity,
    refresh_interval,
    should_lock_ui,
)
from alarm_console.domain.errors import InvalidTimeRangeError
from alarm_console.domain.models import TimeMode

T0 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def test_parse_iso_datetime_accepts_z_suffix_and_naive() -> None:
    assert parse_iso_datetime("2026-01-01T10:00:00Z") == T0
    assert parse_iso_datetime("2026-01-01T10:00:00") == T0
    assert parse_iso_datetime("2026-01-01T12:00:00+02:00") == T0
    with pytest.raises(InvalidTimeRangeError):
        parse_iso_datetime("not a date")


def test_snapshot_range_validation() -> None:
    assert is_valid_snapshot_range("2026-01-01T10:00:00Z", "2026-01-01T10:30:00Z") is True
    assert is_valid_snapshot_range("2026-01-01T10:30:00Z", "2026-01-01T10:00:00Z") is False
    assert is_valid_snapshot_range("2026-01-01T10:00:00Z", "2026-01-01T10:00:00Z") is False
    assert is_valid_snapshot_range("", "2026-01-01T10:00:00Z") is False


def test_time_range_of_rejects_inverted_bounds() -> None:
    with pytest.raises(InvalidTimeRangeError):
        TimeRange.of(T0, T0 - timedelta(minutes=1))
    assert is_valid_historical_range(TimeRange(start=T0, end=T0 + timedelta(hours=1)))
    assert not is_valid_historical_range(TimeRange(start=T0, end=T0))


def test_preset_range_ends_now() -> None:
    rng = preset_range(HistoricalPreset.LAST_6H, T0)
    assert rng.end == T0
    assert rng.span == timedelta(hours=6)
    with pytest.raises(InvalidTimeRangeError):
        preset_range(HistoricalPreset.CUSTOM, T0)


def test_refresh_policy_by_mode() -> None:
    assert refresh_interval(TimeMode.LIVE) == 5.0
    assert refresh_interval(TimeMode.SNAPSHOT) is None
    assert refresh_interval(TimeMode.HISTORICAL) is None

    assert is_auto_refresh_allowed(TimeMode.LIVE, is_paused=False) is True
    assert is_auto_refresh_allowed(TimeMode.LIVE, is_paused=True) is False
    assert is_auto_refresh_allowed(TimeMode.HISTORICAL, is_paused=False) is False

    assert allows_live_duration_increment(TimeMode.LIVE) is True
    assert allows_live_duration_increment(TimeMode.SNAPSHOT) is False
    assert should_lock_ui(TimeMode.SNAPSHOT) is True
    assert should_lock_ui(TimeMode.LIVE) is False


def test_mode_opacity() -> None:
    assert mode_opacity_multiplier(TimeMode.LIVE) == 1.0
    assert mode_opacity_multiplier(TimeMode.HISTORICAL) == 0.9
    assert mode_opacity_multiplier(TimeMode.SNAPSHOT) == 0.85


def test_banner_text_per_mode() -> None:
    assert mode_banner_text(TimeModeState(mode=TimeMode.LIVE, last_refresh=T0)) == "LIVE ● Ready"
    assert mode_banner_text(TimeModeState(mode=TimeMode.LIVE, last_refresh=T0, is_refreshing=True)) == "LIVE ● Updating"
    assert mode_banner_text(TimeModeState(mode=TimeMode.LIVE, last_refresh=T0, is_paused=True)) == "LIVE ● Paused"

    snap = TimeModeState(
        mode=TimeMode.SNAPSHOT,
        last_refresh=T0,
        snapshot_range=TimeRange(start=T0 - timedelta(minutes=30), end=T0),
    )
    assert mode_banner_text(snap) == "SNAPSHOT — 2026-01-01 09:30:00 to 2026-01-01 10:00:00"

    hist = TimeModeState(mode=TimeMode.HISTORICAL, last_refresh=T0, historical_preset=HistoricalPreset.LAST_6H,
                         historical_range=preset_range(HistoricalPreset.LAST_6H, T0))
    assert mode_banner_text(hist) == "HISTORICAL — Last 6 hour"


@pytest.mark.parametrize(
    "span,granularity",
    [
        (timedelta(hours=6), "15m"),
        (timedelta(days=1), "15m"),
        (timedelta(days=3), "1h"),
        (timedelta(days=30), "1d"),
    ],
)
def test_recommended_granularity(span: timedelta, granularity: str) -> None:
    assert recommended_granularity(TimeRange(start=T0, end=T0 + span)) == granularity


@pytest.mark.parametrize(
    "delta,text",
    [
        (timedelta(seconds=30), "< 1m"),
        (timedelta(minutes=42), "42m"),
        (timedelta(hours=3), "3h"),
        (timedelta(hours=3, minutes=5), "3h 5m"),
        (timedelta(days=2, hours=4, minutes=10), "2d 4h"),
        (timedelta(seconds=-5), "< 1m"),
    ],
)
def test_format_duration(delta: timedelta, text: str) -> None:
    assert format_duration(delta) == text
