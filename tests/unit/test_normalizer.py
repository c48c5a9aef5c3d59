"""
Unit tests for alarm_console.core.alarm.normalizer.

Feed records arrive as camelCase mappings. We verify:
- well-formed records become Alarm objects with aware UTC timestamps
- unrecoverable records are rejected individually (the batch continues)
- invariant violations are repaired and reported
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest

from alarm_console.core.alarm.normalizer import (
    alarm_from_record,
    normalize_batch,
    normalize_record,
    repair_alarm,
)
from alarm_console.domain.errors import MalformedAlarmError
from alarm_console.domain.models import (
    AlarmSeverity,
    CommentTag,
    EscalationLevel,
    SourceSystem,
    Technology,
)

T0 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def _rec(**overrides: Any) -> Dict[str, Any]:
    rec: Dict[str, Any] = {
        "globalAlarmId": "ALM-1",
        "severity": "critical",
        "alarmType": "communications",
        "category": "accessibility",
        "technologies": ["4G", "5G"],
        "sourceSystem": "Ericsson",
        "title": "Link down",
        "objectName": "North-C1-S01-N1",
        "hierarchy": {"region": "North", "cluster": "North-C1", "site": "North-C1-S01"},
        "createdAt": "2026-01-01T10:00:00Z",
        "updatedAt": "2026-01-01T10:05:00Z",
        "acknowledged": False,
        "rawVendorData": {"probableCause": 42},
    }
    rec.update(overrides)
    return rec


def test_alarm_from_record_maps_camel_case_fields() -> None:
    a = alarm_from_record(_rec())

    assert a.global_alarm_id == "ALM-1"
    assert a.severity == AlarmSeverity.CRITICAL
    assert a.technologies == frozenset({Technology.G4, Technology.G5})
    assert a.source_system == SourceSystem.ERICSSON
    assert a.created_at == T0
    assert a.updated_at == T0 + timedelta(minutes=5)
    assert a.hierarchy.site == "North-C1-S01"
    assert a.raw_vendor_data == {"probableCause": 42}


def test_naive_timestamps_are_interpreted_as_utc() -> None:
    a = alarm_from_record(_rec(createdAt="2026-01-01T10:00:00", updatedAt=None))
    assert a.created_at == T0
    assert a.updated_at == T0


def test_comments_are_parsed_with_tags() -> None:
    a = alarm_from_record(
        _rec(comments=[{"id": "c1", "author": "ops", "timestamp": "2026-01-01T10:01:00Z",
                        "text": "on it", "severity": "warning"}])
    )
    assert len(a.comments) == 1
    assert a.comments[0].tag == CommentTag.WARNING


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"globalAlarmId": None}, "missing globalAlarmId"),
        ({"severity": None}, "missing severity"),
        ({"createdAt": None}, "missing createdAt"),
        ({"severity": "disaster"}, "unknown severity"),
        ({"sourceSystem": "Cisco"}, "unknown sourceSystem"),
        ({"createdAt": "yesterday"}, "createdAt"),
        ({"technologies": []}, "technologies must not be empty"),
        ({"hierarchy": "North"}, "hierarchy must be a mapping"),
        ({"rawVendorData": "oops"}, "rawVendorData must be a mapping"),
        ({"technologies": 5}, "technologies must be a list"),
        ({"technologies": {"4G": True}}, "technologies must be a list"),
        ({"comments": "on it"}, "comments must be a list"),
        ({"comments": ["on it"]}, "comment must be a mapping"),
    ],
)
def test_unrecoverable_records_are_rejected(overrides: Dict[str, Any], reason: str) -> None:
    with pytest.raises(MalformedAlarmError) as exc:
        normalize_record(_rec(**overrides))
    assert reason in exc.value.reason


def test_updated_at_before_created_at_is_repaired() -> None:
    a, fixes = normalize_record(_rec(updatedAt="2026-01-01T09:00:00Z"))
    assert a.updated_at == a.created_at
    assert fixes == ["updatedAt before createdAt"]


def test_acknowledged_without_timestamp_becomes_unacknowledged() -> None:
    a, fixes = normalize_record(_rec(acknowledged=True, acknowledgedBy="ops"))
    assert a.acknowledged is False
    assert a.acknowledged_by is None
    assert fixes


def test_ack_fields_on_unacknowledged_alarm_are_dropped() -> None:
    a, _ = normalize_record(_rec(acknowledgedBy="ops", acknowledgedAt="2026-01-01T10:01:00Z"))
    assert a.acknowledged_by is None
    assert a.acknowledged_at is None


def test_ack_before_creation_is_clamped() -> None:
    a, fixes = normalize_record(
        _rec(acknowledged=True, acknowledgedBy="ops", acknowledgedAt="2026-01-01T09:59:00Z")
    )
    assert a.acknowledged_at == a.created_at
    assert "acknowledgedAt before createdAt" in fixes


def test_escalation_level_dropped_for_minor_alarm() -> None:
    a, _ = normalize_record(_rec(severity="minor", escalationLevel="L3"))
    assert a.escalation_level is None

    b, fixes = normalize_record(_rec(severity="major", escalationLevel="L3"))
    assert b.escalation_level == EscalationLevel.L3
    assert fixes == []


def test_valid_alarm_passes_repair_unchanged() -> None:
    a = alarm_from_record(_rec())
    repaired, fixes = repair_alarm(a)
    assert repaired is a
    assert fixes == []


def test_batch_rejects_bad_records_individually() -> None:
    """A bad record must not abort the rest of the feed cycle."""
    report = normalize_batch(
        [
            _rec(globalAlarmId="ALM-1"),
            _rec(globalAlarmId=None),
            _rec(globalAlarmId="ALM-3", severity="bogus"),
            _rec(globalAlarmId="ALM-4", updatedAt="2026-01-01T09:00:00Z"),
            "not a record",
        ]
    )

    assert [a.global_alarm_id for a in report.accepted] == ["ALM-1", "ALM-4"]
    assert [label for label, _ in report.rejected] == ["#1", "ALM-3", "#4"]
    assert report.repaired == ["ALM-4"]


def test_batch_keeps_good_records_around_malformed_field_shapes() -> None:
    report = normalize_batch(
        [
            _rec(globalAlarmId="ALM-1"),
            _rec(globalAlarmId="ALM-2", rawVendorData="oops"),
            _rec(globalAlarmId="ALM-3", technologies=5),
            _rec(globalAlarmId="ALM-4"),
        ]
    )

    assert [a.global_alarm_id for a in report.accepted] == ["ALM-1", "ALM-4"]
    assert [label for label, _ in report.rejected] == ["ALM-2", "ALM-3"]


def test_batch_rejects_record_on_unexpected_type_error(monkeypatch) -> None:
    import alarm_console.core.alarm.normalizer as normalizer

    real_repair = normalizer.repair_alarm

    def fussy_repair(alarm):
        if alarm.global_alarm_id == "ALM-2":
            raise TypeError("unsupported operand")
        return real_repair(alarm)

    monkeypatch.setattr(normalizer, "repair_alarm", fussy_repair)

    report = normalize_batch([_rec(globalAlarmId="ALM-1"), _rec(globalAlarmId="ALM-2"), _rec(globalAlarmId="ALM-3")])

    assert [a.global_alarm_id for a in report.accepted] == ["ALM-1", "ALM-3"]
    assert report.rejected == [("ALM-2", "unsupported operand")]
