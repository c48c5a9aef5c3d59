"""
Unit tests for alarm_console.feeds (static, file and synthetic sources).
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from alarm_console.core.alarm.normalizer import normalize_batch
from alarm_console.core.time_mode.time_mode import TimeRange
from alarm_console.feeds.base import AlarmSource, HistoricalAlarmSource, StaticAlarmSource, load_static_source
from alarm_console.feeds.synthetic import SyntheticAlarmSource

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_static_source_filters_range_by_creation_time() -> None:
    src = StaticAlarmSource(
        records=[
            {"globalAlarmId": "A", "createdAt": "2026-01-01T11:30:00Z"},
            {"globalAlarmId": "B", "createdAt": "2026-01-01T08:00:00Z"},
            {"globalAlarmId": "C", "createdAt": "garbage"},
        ]
    )
    out = src.fetch_range(TimeRange(start=T0 - timedelta(hours=1), end=T0))

    assert [r["globalAlarmId"] for r in out] == ["A"]
    assert len(src.fetch()) == 3
    assert src.fetch_count == 1


def test_sources_satisfy_feed_protocols() -> None:
    assert isinstance(StaticAlarmSource(), HistoricalAlarmSource)
    assert isinstance(SyntheticAlarmSource(count=1), AlarmSource)


def test_load_static_source_reads_json_list(tmp_path: Path) -> None:
    p = tmp_path / "alarms.json"
    p.write_text(json.dumps([{"globalAlarmId": "A"}]), encoding="utf-8")
    assert load_static_source(str(p)).records == [{"globalAlarmId": "A"}]

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"globalAlarmId": "A"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_static_source(str(bad))


def test_synthetic_source_is_deterministic_and_valid() -> None:
    a = SyntheticAlarmSource(count=30, seed=7, clock=lambda: T0).fetch()
    b = SyntheticAlarmSource(count=30, seed=7, clock=lambda: T0).fetch()

    assert a == b
    report = normalize_batch(a)
    assert len(report.accepted) == 30
    assert report.rejected == []


def test_synthetic_source_grows_on_each_fetch() -> None:
    src = SyntheticAlarmSource(count=5, new_per_fetch=2, clock=lambda: T0)
    assert len(src.fetch()) == 5
    assert len(src.fetch()) == 7
    ids = [r["globalAlarmId"] for r in src.fetch()]
    assert len(ids) == len(set(ids)) == 9


def test_synthetic_range_replay_does_not_raise_new_alarms() -> None:
    src = SyntheticAlarmSource(count=10, new_per_fetch=3, clock=lambda: T0)
    window = TimeRange(start=T0 - timedelta(hours=3), end=T0 + timedelta(minutes=1))

    first = src.fetch_range(window)
    second = src.fetch_range(window)

    assert len(first) == 10
    assert [r["globalAlarmId"] for r in second] == [r["globalAlarmId"] for r in first]
    assert len(src.fetch()) == 13
