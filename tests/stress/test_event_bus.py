"""
Unit and stress tests for alarm_console.runtime.event_bus.EventBus.

Unit tests validate:
- publish_alarm enqueues events when capacity is available
- publish_alarm does not raise when the queue is full (drop policy)

Stress tests validate:
- publish_alarm is safe under concurrent calls from multiple threads
- the bus does not deadlock or crash under high contention

Notes
-----
Thread stress tests are probabilistic: passing increases confidence but does not
prove the absence of races. Run repeatedly for higher confidence.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import List

import pytest

from alarm_console.domain.events import AlarmEvent, AlarmTransition
from alarm_console.domain.models import AlarmSeverity
from alarm_console.runtime.event_bus import EventBus


def _mk_event(i: int) -> AlarmEvent:
    return AlarmEvent(
        alarm_id=f"ALM-{i}",
        transition=AlarmTransition.SLA_IMMINENT,
        severity=AlarmSeverity.MAJOR,
        timestamp=datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
        message=f"e{i}",
    )


def _drain_queue(q, limit: int = 10_000) -> List[AlarmEvent]:
    out: List[AlarmEvent] = []
    for _ in range(limit):
        try:
            out.append(q.get_nowait())
        except Empty:
            break
    return out


def test_publish_alarm_enqueues_event_when_space_available() -> None:
    bus = EventBus()
    bus.publish_alarm(_mk_event(1))

    got = bus.alarm_events_q.get_nowait()
    assert got.alarm_id == "ALM-1"
    assert bus.dropped == 0


def test_publish_alarm_drops_when_full_without_raising() -> None:
    """
    The bus is best-effort: a full queue drops the event and counts it.
    """
    bus = EventBus(alarm_events_q=Queue(maxsize=3))
    for i in range(3):
        bus.publish_alarm(_mk_event(i))

    bus.publish_alarm(_mk_event(99))

    assert bus.alarm_events_q.qsize() == 3
    assert bus.dropped == 1
    assert [e.alarm_id for e in _drain_queue(bus.alarm_events_q)] == ["ALM-0", "ALM-1", "ALM-2"]


@pytest.mark.stress
def test_event_bus_publish_alarm_concurrent_producers() -> None:
    """
    Publish from 16 threads concurrently; no exceptions, no deadlock and the
    queue stays bounded.
    """
    bus = EventBus()
    start = threading.Barrier(16)
    errors: List[BaseException] = []

    def producer(tid: int) -> None:
        try:
            start.wait()
            for k in range(3000):
                bus.publish_alarm(_mk_event(tid * 1_000_000 + k))
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=producer, args=(t,)) for t in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert all(not t.is_alive() for t in threads), "A producer thread did not finish (possible deadlock)"
    if errors:
        raise AssertionError(f"Concurrency test caught exceptions: {errors!r}")

    assert bus.alarm_events_q.qsize() <= bus.alarm_events_q.maxsize
    drained = _drain_queue(bus.alarm_events_q, limit=5000)
    assert all(isinstance(e, AlarmEvent) for e in drained)
