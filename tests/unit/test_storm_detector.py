"""
Unit tests for alarm_console.core.storm.storm_detector.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from alarm_console.core.storm.storm_detector import (
    StormConfig,
    StormView,
    alarm_rate,
    assess_storm,
    count_in_window,
    is_storm,
)
from alarm_console.domain.models import (
    Alarm,
    AlarmCategory,
    AlarmSeverity,
    AlarmType,
    SourceSystem,
    Technology,
)

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _alarms(n: int, age: timedelta, prefix: str = "A") -> List[Alarm]:
    created = NOW - age
    return [
        Alarm(
            global_alarm_id=f"{prefix}{i}",
            severity=AlarmSeverity.MAJOR,
            alarm_type=AlarmType.COMMUNICATIONS,
            category=AlarmCategory.ACCESSIBILITY,
            technologies=frozenset({Technology.IP}),
            source_system=SourceSystem.HUAWEI,
            created_at=created,
            updated_at=created,
        )
        for i in range(n)
    ]


def test_storm_threshold_is_strict() -> None:
    assert is_storm(1000, 3, 1000) is False
    assert is_storm(1001, 3, 1000) is True
    assert is_storm(0) is False


@pytest.mark.parametrize(
    "count,window,rate",
    [
        (1001, 3, 334),
        (999, 3, 333),
        (4, 8, 1),
        (0, 3, 0),
    ],
)
def test_alarm_rate_rounds_half_up(count: int, window: float, rate: int) -> None:
    assert alarm_rate(count, window) == rate


def test_alarm_rate_rejects_non_positive_window() -> None:
    with pytest.raises(ValueError):
        alarm_rate(10, 0)


def test_count_in_window_excludes_older_alarms() -> None:
    alarms = _alarms(4, timedelta(minutes=1)) + _alarms(3, timedelta(minutes=10), prefix="old")
    assert count_in_window(alarms, NOW, 3) == 4


def test_assess_storm_below_and_above_threshold() -> None:
    cfg = StormConfig(threshold=5, window_minutes=3)

    calm = assess_storm(_alarms(5, timedelta(minutes=1)), NOW, cfg)
    assert calm.is_storm is False
    assert calm.recommended_view == StormView.RAW
    assert calm.suppress_animation is False

    storm = assess_storm(_alarms(6, timedelta(minutes=1)), NOW, cfg)
    assert storm.is_storm is True
    assert storm.alarm_count == 6
    assert storm.rate_per_minute == 2
    assert storm.recommended_view == StormView.GROUPED
    assert storm.suppress_animation is True
