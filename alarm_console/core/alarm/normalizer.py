"""
Ingestion normalization.

Turns feed records into `Alarm` objects that satisfy the entity invariants.
Feeds may deliver either `Alarm` instances or camelCase mappings (the
normalized vendor record shape). Each record is handled on its own:

- records missing identity, severity or creation time, or carrying unknown
  enum values, are rejected with a `MalformedAlarmError`
- records with repairable lifecycle inconsistencies are repaired and logged

A rejected record never aborts the rest of the batch; see
:func:`normalize_batch`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

import structlog

from alarm_console.core.time_mode.time_mode import ensure_utc, parse_iso_datetime
from alarm_console.domain.errors import InvalidTimeRangeError, MalformedAlarmError
from alarm_console.domain.models import (
    Alarm,
    AlarmCategory,
    AlarmComment,
    AlarmSeverity,
    AlarmType,
    CommentTag,
    EscalationLevel,
    HIERARCHY_LEVELS,
    Hierarchy,
    SourceSystem,
    Technology,
)

logger = structlog.get_logger(__name__)

FeedRecord = Union[Alarm, Mapping[str, Any]]
E = TypeVar("E", bound=Enum)


@dataclass
class IngestReport:
    """
    Outcome of one ingestion batch.

    Attributes
    ----------
    accepted
        Normalized alarms, in feed order.
    rejected
        ``(record label, reason)`` per rejected record. The label is the
        record's global id when it has one, else ``"#<index>"``.
    repaired
        Global ids of accepted alarms that needed a repair.
    """

    accepted: List[Alarm] = field(default_factory=list)
    rejected: List[Tuple[str, str]] = field(default_factory=list)
    repaired: List[str] = field(default_factory=list)


def _enum(enum_cls: Type[E], value: Any, what: str, record_id: Optional[str]) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise MalformedAlarmError(f"unknown {what} {value!r}", record_id) from None


def _time(value: Any, what: str, record_id: Optional[str]):
    try:
        return parse_iso_datetime(value)
    except InvalidTimeRangeError:
        raise MalformedAlarmError(f"unparsable {what} {value!r}", record_id) from None


def _opt_time(value: Any, what: str, record_id: Optional[str]):
    return None if value in (None, "") else _time(value, what, record_id)


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _technologies(raw: Any, record_id: str) -> frozenset:
    if raw in (None, ""):
        return frozenset()
    if isinstance(raw, str):
        raw = (raw,)
    elif isinstance(raw, Mapping) or not isinstance(raw, Iterable):
        raise MalformedAlarmError("technologies must be a list", record_id)
    return frozenset(_enum(Technology, t, "technology", record_id) for t in raw)


def _vendor_data(raw: Any, record_id: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise MalformedAlarmError("rawVendorData must be a mapping", record_id)
    return dict(raw)


def _comments(raw: Any, record_id: str) -> Tuple[AlarmComment, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (str, Mapping)) or not isinstance(raw, Iterable):
        raise MalformedAlarmError("comments must be a list", record_id)
    out: List[AlarmComment] = []
    for i, c in enumerate(raw):
        if isinstance(c, AlarmComment):
            out.append(c)
            continue
        if not isinstance(c, Mapping):
            raise MalformedAlarmError("comment must be a mapping", record_id)
        tag = c.get("severity", c.get("tag"))
        out.append(
            AlarmComment(
                id=str(c.get("id") or f"{record_id}-c{i}"),
                author=str(c.get("author", "")),
                timestamp=_time(c.get("timestamp"), "comment timestamp", record_id),
                text=str(c.get("text", "")),
                tag=None if tag in (None, "") else _enum(CommentTag, tag, "comment tag", record_id),
            )
        )
    return tuple(out)


def alarm_from_record(rec: Mapping[str, Any]) -> Alarm:
    """
    Build an Alarm from a camelCase feed mapping.

    The result is *not* yet repaired; pass it through :func:`repair_alarm`.

    Raises
    ------
    MalformedAlarmError
        If a required field is missing or a value is unknown/unparsable.
    """
    record_id = _opt_str(rec.get("globalAlarmId"))
    if record_id is None:
        raise MalformedAlarmError("missing globalAlarmId")
    if rec.get("severity") in (None, ""):
        raise MalformedAlarmError("missing severity", record_id)
    if rec.get("createdAt") in (None, ""):
        raise MalformedAlarmError("missing createdAt", record_id)

    created_at = _time(rec["createdAt"], "createdAt", record_id)
    h = rec.get("hierarchy") or {}
    if isinstance(h, Hierarchy):
        hierarchy = h
    elif isinstance(h, Mapping):
        hierarchy = Hierarchy(**{lvl: _opt_str(h.get(lvl)) for lvl in HIERARCHY_LEVELS})
    else:
        raise MalformedAlarmError("hierarchy must be a mapping", record_id)

    level = rec.get("escalationLevel")

    return Alarm(
        global_alarm_id=record_id,
        severity=_enum(AlarmSeverity, rec["severity"], "severity", record_id),
        alarm_type=_enum(AlarmType, rec.get("alarmType"), "alarmType", record_id),
        category=_enum(AlarmCategory, rec.get("category"), "category", record_id),
        technologies=_technologies(rec.get("technologies"), record_id),
        source_system=_enum(SourceSystem, rec.get("sourceSystem"), "sourceSystem", record_id),
        created_at=created_at,
        updated_at=_opt_time(rec.get("updatedAt"), "updatedAt", record_id) or created_at,
        title=str(rec.get("title", "")),
        description=str(rec.get("description", "")),
        vendor_alarm_id=str(rec.get("vendorAlarmId", "")),
        vendor_alarm_code=str(rec.get("vendorAlarmCode", "")),
        object_type=str(rec.get("objectType", "")),
        object_name=str(rec.get("objectName", "")),
        hierarchy=hierarchy,
        acknowledged=bool(rec.get("acknowledged", False)),
        acknowledged_by=_opt_str(rec.get("acknowledgedBy")),
        acknowledged_at=_opt_time(rec.get("acknowledgedAt"), "acknowledgedAt", record_id),
        assigned_team=_opt_str(rec.get("assignedTeam")),
        escalation_level=None if level in (None, "") else _enum(EscalationLevel, level, "escalationLevel", record_id),
        comments=_comments(rec.get("comments"), record_id),
        raw_vendor_data=_vendor_data(rec.get("rawVendorData"), record_id),
    )


def repair_alarm(alarm: Alarm) -> Tuple[Alarm, List[str]]:
    """
    Enforce the entity invariants on an alarm.

    Parameters
    ----------
    alarm
        Alarm as delivered by the feed.

    Returns
    -------
    (Alarm, list of str)
        The repaired alarm and the list of repairs applied (empty when the
        alarm was already valid).

    Raises
    ------
    MalformedAlarmError
        For defects that cannot be repaired (blank id, no technologies).
    """
    if not alarm.global_alarm_id or not alarm.global_alarm_id.strip():
        raise MalformedAlarmError("missing globalAlarmId")
    if not alarm.technologies:
        raise MalformedAlarmError("technologies must not be empty", alarm.global_alarm_id)

    fixes: List[str] = []
    changes: dict = {}

    created_at = ensure_utc(alarm.created_at)
    updated_at = ensure_utc(alarm.updated_at)
    if created_at != alarm.created_at:
        changes["created_at"] = created_at
    if updated_at < created_at:
        updated_at = created_at
        fixes.append("updatedAt before createdAt")
    if updated_at != alarm.updated_at:
        changes["updated_at"] = updated_at

    ack_at = ensure_utc(alarm.acknowledged_at) if alarm.acknowledged_at is not None else None
    if alarm.acknowledged and ack_at is None:
        fixes.append("acknowledged without acknowledgedAt")
        changes.update(acknowledged=False, acknowledged_by=None, acknowledged_at=None)
    elif not alarm.acknowledged and (ack_at is not None or alarm.acknowledged_by is not None):
        fixes.append("acknowledgement fields on unacknowledged alarm")
        changes.update(acknowledged_by=None, acknowledged_at=None)
    elif alarm.acknowledged and ack_at is not None:
        if ack_at < created_at:
            fixes.append("acknowledgedAt before createdAt")
            ack_at = created_at
        if ack_at != alarm.acknowledged_at:
            changes["acknowledged_at"] = ack_at

    if alarm.escalation_level is not None and not alarm.is_escalation_eligible:
        fixes.append(f"escalationLevel on {alarm.severity.value} alarm")
        changes["escalation_level"] = None

    return (dataclasses.replace(alarm, **changes) if changes else alarm), fixes


def normalize_record(record: FeedRecord) -> Tuple[Alarm, List[str]]:
    """
    Normalize one feed record.

    Returns
    -------
    (Alarm, list of str)
        Valid alarm and the repairs applied.

    Raises
    ------
    MalformedAlarmError
        If the record must be rejected.
    """
    if isinstance(record, Alarm):
        return repair_alarm(record)
    if not isinstance(record, Mapping):
        raise MalformedAlarmError(f"unsupported record type {type(record).__name__}")
    return repair_alarm(alarm_from_record(record))


def _record_label(rec: FeedRecord, index: int) -> str:
    if isinstance(rec, Alarm):
        return rec.global_alarm_id or f"#{index}"
    if isinstance(rec, Mapping):
        rid = rec.get("globalAlarmId")
        if isinstance(rid, str) and rid.strip():
            return rid.strip()
    return f"#{index}"


def normalize_batch(records: Iterable[FeedRecord]) -> IngestReport:
    """
    Normalize a feed batch, rejecting bad records individually.

    Parameters
    ----------
    records
        Feed records in delivery order.

    Returns
    -------
    IngestReport
        Accepted alarms plus rejection and repair bookkeeping.
    """
    report = IngestReport()
    for i, rec in enumerate(records):
        try:
            alarm, fixes = normalize_record(rec)
        except MalformedAlarmError as e:
            label = e.record_id or f"#{i}"
            report.rejected.append((label, e.reason))
            logger.warning("ingest_record_rejected", record=label, reason=e.reason)
            continue
        except (TypeError, ValueError) as e:
            label = _record_label(rec, i)
            report.rejected.append((label, str(e)))
            logger.warning("ingest_record_rejected", record=label, reason=str(e))
            continue

        if fixes:
            report.repaired.append(alarm.global_alarm_id)
            logger.warning("ingest_record_repaired", alarm_id=alarm.global_alarm_id, repairs=fixes)
        report.accepted.append(alarm)
    return report
