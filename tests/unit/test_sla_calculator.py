"""
Unit tests for alarm_console.core.sla.sla_calculator.

We verify:
- severity -> SLA duration mapping and level labels
- anchor selection (acknowledgement re-anchors the timer)
- classification boundaries (escalated at zero, imminent below 25 %)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from alarm_console.core.sla.sla_calculator import (
    SlaPolicy,
    SlaState,
    classify,
    compute_sla,
    compute_sla_many,
    format_remaining,
)
from alarm_console.domain.models import (
    Alarm,
    AlarmCategory,
    AlarmSeverity,
    AlarmType,
    SourceSystem,
    Technology,
)

T0 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def _mk_alarm(severity: AlarmSeverity = AlarmSeverity.CRITICAL, ack_at: Optional[datetime] = None,
              aid: str = "ALM-1") -> Alarm:
    return Alarm(
        global_alarm_id=aid,
        severity=severity,
        alarm_type=AlarmType.COMMUNICATIONS,
        category=AlarmCategory.ACCESSIBILITY,
        technologies=frozenset({Technology.G5}),
        source_system=SourceSystem.NOKIA,
        created_at=T0,
        updated_at=T0,
        title="Link down",
        acknowledged=ack_at is not None,
        acknowledged_by="ops" if ack_at is not None else None,
        acknowledged_at=ack_at,
    )


@pytest.mark.parametrize(
    "severity,minutes,label",
    [
        (AlarmSeverity.CRITICAL, 15, "L4 (15 min)"),
        (AlarmSeverity.MAJOR, 30, "L3 (30 min)"),
        (AlarmSeverity.MINOR, 60, "L2 (60 min)"),
        (AlarmSeverity.WARNING, 60, "L2 (60 min)"),
    ],
)
def test_sla_duration_and_level_by_severity(severity: AlarmSeverity, minutes: int, label: str) -> None:
    st = compute_sla(_mk_alarm(severity=severity), T0)
    assert st.sla_duration == timedelta(minutes=minutes)
    assert st.sla_level == label


def test_critical_alarm_escalated_at_exactly_fifteen_minutes() -> None:
    st = compute_sla(_mk_alarm(), T0 + timedelta(minutes=15))
    assert st.remaining == timedelta(0)
    assert st.state == SlaState.ESCALATED
    assert st.is_escalated


def test_critical_alarm_imminent_one_second_before_deadline() -> None:
    st = compute_sla(_mk_alarm(), T0 + timedelta(minutes=14, seconds=59))
    assert st.remaining == timedelta(seconds=1)
    assert st.state == SlaState.ESCALATION_IMMINENT
    assert st.is_escalation_imminent


def test_exactly_quarter_remaining_is_still_on_track() -> None:
    st = compute_sla(_mk_alarm(), T0 + timedelta(minutes=11, seconds=15))
    assert st.percentage_remaining == pytest.approx(25.0)
    assert st.state == SlaState.ON_TRACK


def test_acknowledgement_reanchors_timer() -> None:
    ack_at = T0 + timedelta(minutes=14)
    st = compute_sla(_mk_alarm(ack_at=ack_at), T0 + timedelta(minutes=20))

    assert st.anchor == ack_at
    assert st.elapsed == timedelta(minutes=6)
    assert st.state == SlaState.ON_TRACK
    assert st.timer_label == "SLA Timer"


def test_unacknowledged_alarm_uses_escalation_timer_label() -> None:
    assert compute_sla(_mk_alarm(), T0).timer_label == "Escalation Timer"


def test_elapsed_is_clamped_when_now_precedes_anchor() -> None:
    st = compute_sla(_mk_alarm(), T0 - timedelta(minutes=5))
    assert st.elapsed == timedelta(0)
    assert st.remaining == timedelta(minutes=15)
    assert st.percentage_remaining == pytest.approx(100.0)


def test_custom_policy_durations_and_threshold() -> None:
    policy = SlaPolicy(durations={AlarmSeverity.CRITICAL: timedelta(minutes=10)}, imminent_pct=50.0)
    st = compute_sla(_mk_alarm(), T0 + timedelta(minutes=6), policy)
    assert st.sla_level == "L4 (10 min)"
    assert st.state == SlaState.ESCALATION_IMMINENT


def test_classify_boundaries() -> None:
    assert classify(timedelta(0), 0.0) == SlaState.ESCALATED
    assert classify(timedelta(seconds=1), 24.9) == SlaState.ESCALATION_IMMINENT
    assert classify(timedelta(seconds=1), 25.0) == SlaState.ON_TRACK


def test_compute_sla_many_is_keyed_by_id() -> None:
    out = compute_sla_many([_mk_alarm(aid="A"), _mk_alarm(aid="B")], T0)
    assert set(out) == {"A", "B"}


@pytest.mark.parametrize(
    "remaining,text",
    [
        (timedelta(0), "00:00"),
        (timedelta(seconds=65), "01:05"),
        (timedelta(minutes=59, seconds=59), "59:59"),
        (timedelta(minutes=75), "75:00"),
    ],
)
def test_format_remaining(remaining: timedelta, text: str) -> None:
    assert format_remaining(remaining) == text
