from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from alarm_console.core.alarm.normalizer import FeedRecord, IngestReport
from alarm_console.core.state.alarm_store import AlarmStore, ExportTable
from alarm_console.domain.events import AlarmEvent
from alarm_console.domain.models import Alarm, CommentTag, EscalationLevel


@dataclass
class StateStore:
    """
    Thread-safe facade over the alarm working set.

    'StateStore' is the only writer of alarm data. The filter engine, SLA
    calculator and storm detector read the immutable snapshots it returns
    and never write through it.

    Concurrency Model
    -----------------
    All reads/writes are guarded by a single re-entrant lock (`threading.RLock`).
    An ingest batch is applied completely under the lock, so a snapshot taken
    afterwards never observes a half-ingested feed cycle.

    Design Notes
    ------------
    - Snapshot properties return copies to avoid common iteration hazards such
      as "dict changed size during iteration".
    - Alarms are frozen dataclasses; copies of the containers are enough.

    Attributes
    ----------
    alarms
        Underlying (not thread-safe) alarm store.
    """

    alarms: AlarmStore = field(default_factory=AlarmStore)

    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    # --- Feed API ---
    def ingest(self, records: Iterable[FeedRecord], now: Optional[datetime] = None) -> IngestReport:
        """
        Merge one feed batch into the working set.

        Parameters
        ----------
        records
            Feed records. Materialized before the lock is taken so that a
            lazy feed cannot run I/O while holding it.
        now
            Event timestamp for the audit trail.
        """
        batch = list(records)
        with self._lock:
            return self.alarms.ingest(batch, now=now)

    # --- Operator API ---
    def acknowledge(self, ids: Iterable[str], actor: str, now: datetime) -> List[str]:
        with self._lock:
            return self.alarms.acknowledge(ids, actor, now)

    def assign(self, ids: Iterable[str], team: str, now: datetime, actor: Optional[str] = None) -> List[str]:
        with self._lock:
            return self.alarms.assign(ids, team, now, actor=actor)

    def add_comment(
        self,
        ids: Iterable[str],
        text: str,
        tag: Optional[CommentTag],
        actor: str,
        now: datetime,
    ) -> List[str]:
        with self._lock:
            return self.alarms.add_comment(ids, text, tag, actor, now)

    def set_escalation_level(self, ids: Iterable[str], level: EscalationLevel, actor: str, now: datetime) -> List[str]:
        with self._lock:
            return self.alarms.set_escalation_level(ids, level, actor, now)

    def bulk_export(self, ids: Iterable[str], now: datetime) -> ExportTable:
        with self._lock:
            return self.alarms.bulk_export(ids, now)

    def get(self, alarm_id: str) -> Optional[Alarm]:
        with self._lock:
            return self.alarms.get(alarm_id)

    # -------------------------
    # Snapshot properties
    # Return copies to avoid "dict changed size during iteration"
    # -------------------------
    @property
    def snapshot(self) -> List[Alarm]:
        """
        Snapshot copy of the working set, in first-seen order.

        Returns
        -------
        list of Alarm
            Immutable alarms; the list itself is a fresh copy.
        """
        with self._lock:
            return self.alarms.all()

    @property
    def alarm_index(self) -> Dict[str, Alarm]:
        with self._lock:
            return dict(self.alarms.alarms)

    @property
    def alarm_events(self) -> List[AlarmEvent]:
        """
        Snapshot copy of the alarm event history.

        Returns
        -------
        list of AlarmEvent
            Events in insertion order.
        """
        with self._lock:
            return list(self.alarms.events)

    def __len__(self) -> int:
        with self._lock:
            return len(self.alarms.alarms)
