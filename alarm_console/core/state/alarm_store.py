from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from alarm_console.core.alarm.normalizer import FeedRecord, IngestReport, normalize_batch
from alarm_console.core.time_mode.time_mode import ensure_utc, format_duration
from alarm_console.domain.errors import EmptyCommentError
from alarm_console.domain.events import AlarmEvent, AlarmTransition
from alarm_console.domain.models import Alarm, AlarmComment, CommentTag, EscalationLevel

EXPORT_COLUMNS: Tuple[str, ...] = (
    "global_alarm_id",
    "severity",
    "title",
    "object_name",
    "created_at",
    "duration",
    "assigned_team",
    "acknowledged",
    "acknowledged_by",
    "escalation_level",
    "source_system",
)

ExportRow = Tuple[str, ...]


@dataclass(frozen=True)
class ExportTable:
    """Ordered tabular projection of alarms for CSV/XLSX writers."""

    columns: Tuple[str, ...]
    rows: List[ExportRow]


def _iso(ts: datetime) -> str:
    return ts.isoformat(timespec="seconds")


def _merge_comments(old: Sequence[AlarmComment], new: Sequence[AlarmComment]) -> Tuple[AlarmComment, ...]:
    seen = {c.id for c in old}
    return tuple(old) + tuple(c for c in new if c.id not in seen)


def _merge(prev: Alarm, incoming: Alarm) -> Alarm:
    """
    Combine a known alarm with a fresh feed copy.

    Feed fields win; operator state (acknowledgement, team, escalation
    level, comments) survives unless the feed carries its own value.
    """
    changes = {}
    if prev.acknowledged and not incoming.acknowledged:
        changes.update(
            acknowledged=True,
            acknowledged_by=prev.acknowledged_by,
            acknowledged_at=prev.acknowledged_at,
        )
    if incoming.assigned_team is None and prev.assigned_team is not None:
        changes["assigned_team"] = prev.assigned_team
    if incoming.escalation_level is None and prev.escalation_level is not None and incoming.is_escalation_eligible:
        changes["escalation_level"] = prev.escalation_level
    changes["comments"] = _merge_comments(prev.comments, incoming.comments)
    changes["created_at"] = prev.created_at
    changes["updated_at"] = max(incoming.updated_at, prev.updated_at, prev.created_at)
    merged = dataclasses.replace(incoming, **changes)
    if merged.acknowledged_at is not None and merged.acknowledged_at < merged.created_at:
        merged = dataclasses.replace(merged, acknowledged_at=merged.created_at)
    return merged


@dataclass
class AlarmStore:
    """
    In-memory store for the working set of alarms.

    This store maintains:
    - the current Alarm per global id, in first-seen order
    - an event history (RAISED, ACKNOWLEDGED, COMMENTED, ...)

    Every operation is total over the current set: ids that are not present
    are skipped silently, since an operator selection may be older than the
    last ingest. Alarms are never deleted and comments are never removed.

    Notes
    -----
    - This store is intentionally simple and not thread-safe.
      Synchronization is handled by the enclosing `StateStore`.
    - Alarms are frozen; mutations replace the stored instance, so any
      snapshot handed out earlier stays unchanged.
    """

    alarms: Dict[str, Alarm] = field(default_factory=dict)
    events: List[AlarmEvent] = field(default_factory=list)

    def ingest(self, records: Iterable[FeedRecord], now: Optional[datetime] = None) -> IngestReport:
        """
        Merge a feed batch into the working set.

        Parameters
        ----------
        records
            Feed records (Alarm objects or camelCase mappings).
        now
            Event timestamp. Defaults to each alarm's ``updated_at``.

        Returns
        -------
        IngestReport
            Accepted/rejected/repaired bookkeeping for the batch.
        """
        report = normalize_batch(records)
        for incoming in report.accepted:
            aid = incoming.global_alarm_id
            prev = self.alarms.get(aid)
            ts = ensure_utc(now) if now is not None else incoming.updated_at
            if prev is None:
                self.alarms[aid] = incoming
                self._record(incoming, AlarmTransition.RAISED, ts, incoming.title or "alarm raised")
                continue

            merged = _merge(prev, incoming)
            if merged != prev:
                self.alarms[aid] = merged
                self._record(merged, AlarmTransition.UPDATED, ts, "alarm updated from feed")
        return report

    def get(self, alarm_id: str) -> Optional[Alarm]:
        return self.alarms.get(alarm_id)

    def all(self) -> List[Alarm]:
        return list(self.alarms.values())

    def acknowledge(self, ids: Iterable[str], actor: str, now: datetime) -> List[str]:
        """
        Acknowledge alarms.

        Already-acknowledged alarms are left untouched, so repeating the call
        is a no-op.

        Parameters
        ----------
        ids
            Global alarm ids.
        actor
            Operator acknowledging.
        now
            Acknowledgement time (clamped to ``created_at`` if earlier).

        Returns
        -------
        list of str
            Ids that changed.
        """
        now = ensure_utc(now)
        changed: List[str] = []
        for aid in ids:
            alarm = self.alarms.get(aid)
            if alarm is None or alarm.acknowledged:
                continue
            ack_at = max(now, alarm.created_at)
            self._replace(
                alarm,
                AlarmTransition.ACKNOWLEDGED,
                now,
                f"acknowledged by {actor}",
                actor=actor,
                acknowledged=True,
                acknowledged_by=actor,
                acknowledged_at=ack_at,
            )
            changed.append(aid)
        return changed

    def assign(self, ids: Iterable[str], team: str, now: datetime, actor: Optional[str] = None) -> List[str]:
        """Set the assigned team on each present alarm."""
        now = ensure_utc(now)
        changed: List[str] = []
        for aid in ids:
            alarm = self.alarms.get(aid)
            if alarm is None:
                continue
            self._replace(alarm, AlarmTransition.ASSIGNED, now, f"assigned to {team}",
                          actor=actor, details=team, assigned_team=team)
            changed.append(aid)
        return changed

    def add_comment(
        self,
        ids: Iterable[str],
        text: str,
        tag: Optional[CommentTag],
        actor: str,
        now: datetime,
    ) -> List[str]:
        """
        Append one comment per present alarm.

        Raises
        ------
        EmptyCommentError
            If ``text`` is empty or whitespace; nothing is appended.
        """
        if not text or not text.strip():
            raise EmptyCommentError("comment text must not be empty")

        now = ensure_utc(now)
        changed: List[str] = []
        for aid in ids:
            alarm = self.alarms.get(aid)
            if alarm is None:
                continue
            comment = AlarmComment(
                id=f"comment-{uuid.uuid4().hex[:12]}",
                author=actor,
                timestamp=now,
                text=text,
                tag=tag,
            )
            self._replace(alarm, AlarmTransition.COMMENTED, now, text, actor=actor,
                          comments=alarm.comments + (comment,))
            changed.append(aid)
        return changed

    def set_escalation_level(
        self,
        ids: Iterable[str],
        level: EscalationLevel,
        actor: str,
        now: datetime,
    ) -> List[str]:
        """
        Set the escalation level on major/critical alarms.

        Alarms of any other severity are skipped to keep the escalation
        invariant.
        """
        now = ensure_utc(now)
        changed: List[str] = []
        for aid in ids:
            alarm = self.alarms.get(aid)
            if alarm is None or not alarm.is_escalation_eligible or alarm.escalation_level == level:
                continue
            self._replace(alarm, AlarmTransition.ESCALATION_SET, now, f"escalated to {level.value}",
                          actor=actor, details=level.value, escalation_level=level)
            changed.append(aid)
        return changed

    def bulk_export(self, ids: Iterable[str], now: datetime) -> ExportTable:
        """
        Read-only tabular projection of the given alarms.

        Rows follow the requested id order; ids not present are skipped.
        """
        now = ensure_utc(now)
        rows: List[ExportRow] = []
        for aid in ids:
            a = self.alarms.get(aid)
            if a is None:
                continue
            rows.append(
                (
                    a.global_alarm_id,
                    a.severity.value,
                    a.title,
                    a.object_name,
                    _iso(a.created_at),
                    format_duration(a.duration(now)),
                    a.assigned_team or "",
                    "yes" if a.acknowledged else "no",
                    a.acknowledged_by or "",
                    a.escalation_level.value if a.escalation_level else "",
                    a.source_system.value,
                )
            )
        return ExportTable(columns=EXPORT_COLUMNS, rows=rows)

    def _replace(self, alarm: Alarm, transition: AlarmTransition, now: datetime, message: str,
                 actor: Optional[str] = None, details: Optional[str] = None, **changes) -> Alarm:
        updated = dataclasses.replace(alarm, updated_at=max(alarm.updated_at, now), **changes)
        self.alarms[alarm.global_alarm_id] = updated
        self._record(updated, transition, now, message, actor=actor, details=details)
        return updated

    def _record(self, alarm: Alarm, transition: AlarmTransition, ts: datetime, message: str,
                actor: Optional[str] = None, details: Optional[str] = None) -> None:
        self.events.append(
            AlarmEvent(
                alarm_id=alarm.global_alarm_id,
                transition=transition,
                severity=alarm.severity,
                timestamp=ts,
                message=message,
                actor=actor,
                details=details,
            )
        )
