"""
Unit tests for alarm_console.bootstrap and the row adapters in alarm_console.views.

The composition root is exercised end to end with a static feed and a
scheduler that never fires, so the test controls every refresh.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List

from alarm_console.bootstrap import build_console_system, build_sla_policy
from alarm_console.config.yaml_config import parse_console_config
from alarm_console.domain.models import AlarmSeverity
from alarm_console.feeds.base import StaticAlarmSource
from alarm_console.feeds.synthetic import SyntheticAlarmSource
from alarm_console.views.snapshots import alarm_rows, event_rows, summary_line


@dataclass
class _Task:
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class _IdleScheduler:
    tasks: List[_Task] = field(default_factory=list)

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> _Task:
        task = _Task()
        self.tasks.append(task)
        return task


def _records() -> list:
    now = datetime.now(timezone.utc)
    return [
        {
            "globalAlarmId": "ALM-1",
            "severity": "critical",
            "alarmType": "communications",
            "category": "accessibility",
            "technologies": ["5G"],
            "sourceSystem": "Ericsson",
            "title": "Link down",
            "objectName": "N1",
            "createdAt": (now - timedelta(minutes=3)).isoformat(),
        }
    ]


def test_sla_policy_from_config() -> None:
    cfg = parse_console_config({"sla": {"critical_minutes": 10, "major_minutes": 20, "default_minutes": 45}})
    policy = build_sla_policy(cfg)

    assert policy.duration_for(AlarmSeverity.CRITICAL) == timedelta(minutes=10)
    assert policy.duration_for(AlarmSeverity.MAJOR) == timedelta(minutes=20)
    assert policy.duration_for(AlarmSeverity.MINOR) == timedelta(minutes=45)


def test_default_feed_is_synthetic() -> None:
    wiring = build_console_system(config=parse_console_config({}), scheduler=_IdleScheduler())
    assert isinstance(wiring.controller._source, SyntheticAlarmSource)


def test_runtime_start_refreshes_and_stop_cancels() -> None:
    sched = _IdleScheduler()
    wiring = build_console_system(
        config=parse_console_config({"logging": {"json": False}}),
        source=StaticAlarmSource(records=_records()),
        scheduler=sched,
    )

    wiring.runtime.start()
    try:
        assert len(wiring.store) == 1
        assert len(sched.tasks) == 1
        assert wiring.runtime.running is True
    finally:
        wiring.runtime.stop()

    assert sched.tasks[0].cancelled is True
    assert wiring.runtime.running is False


def test_row_adapters_render_view() -> None:
    wiring = build_console_system(
        config=parse_console_config({}),
        source=StaticAlarmSource(records=_records()),
        scheduler=_IdleScheduler(),
    )
    wiring.controller.refresh_now()
    view = wiring.console.view()

    rows = alarm_rows(view)
    assert len(rows) == 1
    aid, severity, title, obj, age, team, sla = rows[0]
    assert (aid, severity, title, obj, team) == ("ALM-1", "critical", "Link down", "N1", "")
    assert age == "3m"
    assert sla.startswith("on_track ")

    assert event_rows(wiring.store)[0][1:3] == ("ALM-1", "RAISED")
    summary = summary_line(view)
    assert summary["mode"] == "live"
    assert summary["critical"] == 1
    assert summary["locked"] is False
