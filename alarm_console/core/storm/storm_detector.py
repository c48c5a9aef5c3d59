"""
Alarm storm detection.

A storm is a surge of alarms within a short window exceeding a threshold.
This module only supplies the verdict, the count and the rate; grouping or
collapsing rows under a storm is left to the presentation layer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable

from alarm_console.core.time_mode.time_mode import ensure_utc
from alarm_console.domain.models import Alarm

DEFAULT_STORM_THRESHOLD = 1000
DEFAULT_STORM_WINDOW_MINUTES = 3


class StormView(str, Enum):
    """Alarm list presentation recommended to the UI."""

    GROUPED = "grouped"
    RAW = "raw"


@dataclass(frozen=True)
class StormConfig:
    threshold: int = DEFAULT_STORM_THRESHOLD
    window_minutes: float = DEFAULT_STORM_WINDOW_MINUTES


@dataclass(frozen=True)
class StormAssessment:
    """
    Storm verdict for one snapshot.

    Parameters
    ----------
    is_storm
        Count strictly exceeds the threshold.
    alarm_count
        Alarms raised within the window.
    rate_per_minute
        Rounded alarms per minute over the window.
    window_minutes
        Window length used.
    threshold
        Threshold used.
    recommended_view
        GROUPED under a storm, RAW otherwise.
    suppress_animation
        True under a storm (no per-alarm animation).
    """

    is_storm: bool
    alarm_count: int
    rate_per_minute: int
    window_minutes: float
    threshold: int
    recommended_view: StormView
    suppress_animation: bool


def is_storm(alarm_count: int, window_minutes: float = DEFAULT_STORM_WINDOW_MINUTES,
             threshold: int = DEFAULT_STORM_THRESHOLD) -> bool:
    """
    Strict threshold check: ``alarm_count > threshold``.

    ``window_minutes`` describes the window the count was taken over; it does
    not enter the comparison.
    """
    return alarm_count > threshold


def alarm_rate(alarm_count: int, window_minutes: float) -> int:
    """
    Alarms per minute, rounded half up.

    Raises
    ------
    ValueError
        If ``window_minutes`` is not positive.
    """
    if window_minutes <= 0:
        raise ValueError("window_minutes must be positive")
    return int(math.floor(alarm_count / window_minutes + 0.5))


def count_in_window(alarms: Iterable[Alarm], now: datetime, window_minutes: float) -> int:
    """Number of alarms created within ``[now - window, now]``."""
    end = ensure_utc(now)
    start = end - timedelta(minutes=window_minutes)
    return sum(1 for a in alarms if start <= a.created_at <= end)


def assess_storm(alarms: Iterable[Alarm], now: datetime, config: StormConfig = StormConfig()) -> StormAssessment:
    """
    Assess a snapshot for storm conditions.

    Parameters
    ----------
    alarms
        Store snapshot.
    now
        Reference instant (end of the window).
    config
        Threshold and window.
    """
    count = count_in_window(alarms, now, config.window_minutes)
    storm = is_storm(count, config.window_minutes, config.threshold)
    return StormAssessment(
        is_storm=storm,
        alarm_count=count,
        rate_per_minute=alarm_rate(count, config.window_minutes),
        window_minutes=config.window_minutes,
        threshold=config.threshold,
        recommended_view=StormView.GROUPED if storm else StormView.RAW,
        suppress_animation=storm,
    )
