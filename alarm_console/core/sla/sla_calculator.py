"""
SLA / escalation timer.

Pure computation, no stored state: every call re-derives the timer from the
alarm and a reference "now" (wall clock in live mode, range end in snapshot
and historical modes). Nothing is written back to the alarm; the operator
escalation level is an independent field.

Algorithm
---------
1. The SLA duration is selected by severity (policy table).
2. The anchor is ``acknowledged_at`` when set, else ``created_at``. This
   makes the remaining percentage jump back up at acknowledgement time.
3. ``remaining = max(0, duration - elapsed)``.
4. ``remaining == 0`` -> ESCALATED; ``< 25 %`` left -> ESCALATION_IMMINENT;
   otherwise ON_TRACK.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, Mapping

from alarm_console.core.time_mode.time_mode import ensure_utc
from alarm_console.domain.models import Alarm, AlarmSeverity


class SlaState(str, Enum):
    """
    Classification of an SLA timer.

    Members
    -------
    ON_TRACK : str
        At least the imminent threshold of the SLA remains.
    ESCALATION_IMMINENT : str
        Less than the imminent threshold remains.
    ESCALATED : str
        No SLA time remains.
    """

    ON_TRACK = "on_track"
    ESCALATION_IMMINENT = "escalation_imminent"
    ESCALATED = "escalated"


def _default_durations() -> Dict[AlarmSeverity, timedelta]:
    return {
        AlarmSeverity.CRITICAL: timedelta(minutes=15),
        AlarmSeverity.MAJOR: timedelta(minutes=30),
    }


_SLA_LEVELS = {
    AlarmSeverity.CRITICAL: "L4",
    AlarmSeverity.MAJOR: "L3",
}


@dataclass(frozen=True)
class SlaPolicy:
    """
    Severity -> SLA duration table.

    Parameters
    ----------
    durations
        Per-severity SLA durations. Severities not listed use ``default``.
    default
        Duration for every other severity.
    imminent_pct
        Remaining percentage below which escalation is imminent.
    """

    durations: Mapping[AlarmSeverity, timedelta] = field(default_factory=_default_durations)
    default: timedelta = timedelta(minutes=60)
    imminent_pct: float = 25.0

    def duration_for(self, severity: AlarmSeverity) -> timedelta:
        return self.durations.get(severity, self.default)

    def level_label(self, severity: AlarmSeverity) -> str:
        """Display label such as ``L4 (15 min)``."""
        minutes = int(self.duration_for(severity).total_seconds() // 60)
        return f"{_SLA_LEVELS.get(severity, 'L2')} ({minutes} min)"


DEFAULT_SLA_POLICY = SlaPolicy()


@dataclass(frozen=True)
class SlaStatus:
    """
    SLA timer for one alarm at one reference instant.

    Parameters
    ----------
    alarm_id
        Global alarm id.
    sla_duration
        Total SLA budget for the alarm's severity.
    anchor
        Timer start (``acknowledged_at`` or ``created_at``).
    elapsed
        Time since the anchor, never negative.
    remaining
        SLA time left, never negative.
    percentage_remaining
        ``remaining / sla_duration * 100``, within [0, 100].
    state
        Timer classification.
    timer_label
        ``Escalation Timer`` before acknowledgement, ``SLA Timer`` after.
    sla_level
        Policy level label, e.g. ``L4 (15 min)``.
    """

    alarm_id: str
    sla_duration: timedelta
    anchor: datetime
    elapsed: timedelta
    remaining: timedelta
    percentage_remaining: float
    state: SlaState
    timer_label: str
    sla_level: str

    @property
    def is_escalated(self) -> bool:
        return self.state == SlaState.ESCALATED

    @property
    def is_escalation_imminent(self) -> bool:
        return self.state == SlaState.ESCALATION_IMMINENT


def classify(remaining: timedelta, percentage_remaining: float, imminent_pct: float = 25.0) -> SlaState:
    if remaining <= timedelta(0):
        return SlaState.ESCALATED
    if percentage_remaining < imminent_pct:
        return SlaState.ESCALATION_IMMINENT
    return SlaState.ON_TRACK


def compute_sla(alarm: Alarm, now: datetime, policy: SlaPolicy = DEFAULT_SLA_POLICY) -> SlaStatus:
    """
    Derive the SLA timer of an alarm.

    Parameters
    ----------
    alarm
        Alarm to evaluate. Not modified.
    now
        Reference instant for the current time mode.
    policy
        Severity -> duration table.

    Returns
    -------
    SlaStatus
        Timer values and classification.
    """
    duration = policy.duration_for(alarm.severity)
    anchor = alarm.acknowledged_at if alarm.acknowledged_at is not None else alarm.created_at
    elapsed = max(timedelta(0), ensure_utc(now) - anchor)
    remaining = max(timedelta(0), duration - elapsed)
    pct = remaining / duration * 100 if duration > timedelta(0) else 0.0

    return SlaStatus(
        alarm_id=alarm.global_alarm_id,
        sla_duration=duration,
        anchor=anchor,
        elapsed=elapsed,
        remaining=remaining,
        percentage_remaining=pct,
        state=classify(remaining, pct, policy.imminent_pct),
        timer_label="SLA Timer" if alarm.acknowledged else "Escalation Timer",
        sla_level=policy.level_label(alarm.severity),
    )


def compute_sla_many(alarms: Iterable[Alarm], now: datetime,
                     policy: SlaPolicy = DEFAULT_SLA_POLICY) -> Dict[str, SlaStatus]:
    """SLA status per alarm id for a snapshot."""
    return {a.global_alarm_id: compute_sla(a, now, policy) for a in alarms}


def format_remaining(remaining: timedelta) -> str:
    """Countdown text ``MM:SS`` (minutes are not wrapped at 60)."""
    total = int(max(timedelta(0), remaining).total_seconds())
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02d}:{seconds:02d}"
