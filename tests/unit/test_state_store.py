"""
Unit tests for alarm_console.core.state_store.StateStore.

The facade adds locking and copy-on-read; we verify that snapshots are
independent of later writes and that writes reach the underlying store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterator

from alarm_console.core.state_store import StateStore
from alarm_console.domain.events import AlarmTransition

T0 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def _rec(aid: str) -> dict:
    return {
        "globalAlarmId": aid,
        "severity": "major",
        "alarmType": "environmental",
        "category": "maintenance",
        "technologies": ["FTTx"],
        "sourceSystem": "Huawei",
        "createdAt": T0.isoformat(),
    }


def test_snapshot_is_a_copy() -> None:
    store = StateStore()
    store.ingest([_rec("A")], now=T0)

    snap = store.snapshot
    store.ingest([_rec("B")], now=T0)

    assert [a.global_alarm_id for a in snap] == ["A"]
    assert len(store) == 2


def test_ingest_accepts_lazy_iterables() -> None:
    def gen() -> Iterator[dict]:
        yield _rec("A")
        yield _rec("B")

    store = StateStore()
    report = store.ingest(gen(), now=T0)

    assert len(report.accepted) == 2
    assert set(store.alarm_index) == {"A", "B"}


def test_operator_commands_go_through_to_store() -> None:
    store = StateStore()
    store.ingest([_rec("A")], now=T0)

    assert store.acknowledge(["A"], actor="ops", now=T0) == ["A"]
    assert store.get("A").acknowledged is True
    assert store.alarm_events[-1].transition == AlarmTransition.ACKNOWLEDGED
    assert store.get("missing") is None
