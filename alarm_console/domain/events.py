"""
Alarm event domain models.

This module defines the event-level representation of alarm lifecycle changes.
An `AlarmEvent` represents *what happened* to an alarm at a specific time,
while `Alarm` (in models.py) represents *what is currently true*.

Events are typically used for:
- the per-store audit trail
- escalation notifications (webhook)
- reporting and post-analysis
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from alarm_console.domain.models import AlarmSeverity


class AlarmTransition(str, Enum):
    """
    Alarm lifecycle transition.

    Members
    -------
    RAISED : str
        Alarm first seen by the store.
    UPDATED : str
        Feed delivered new field values for a known alarm.
    ACKNOWLEDGED : str
        Operator acknowledged the alarm.
    ASSIGNED : str
        Alarm assigned to a team.
    COMMENTED : str
        Comment appended.
    ESCALATION_SET : str
        Operator set the escalation level.
    SLA_IMMINENT : str
        Less than the imminent threshold of SLA time remains.
    SLA_BREACHED : str
        SLA time exhausted.
    """

    RAISED = "RAISED"
    UPDATED = "UPDATED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    ASSIGNED = "ASSIGNED"
    COMMENTED = "COMMENTED"
    ESCALATION_SET = "ESCALATION_SET"
    SLA_IMMINENT = "SLA_IMMINENT"
    SLA_BREACHED = "SLA_BREACHED"


NOTIFIABLE_TRANSITIONS = frozenset(
    {AlarmTransition.ESCALATION_SET, AlarmTransition.SLA_IMMINENT, AlarmTransition.SLA_BREACHED}
)


@dataclass(frozen=True)
class AlarmEvent:
    """
    Event emitted when an alarm changes.

    Parameters
    ----------
    alarm_id
        Global id of the affected alarm.
    transition
        What happened.
    severity
        Alarm severity at the time of the transition.
    timestamp
        When it happened.
    message
        Human-readable description (used in logs/notifications).
    actor
        Operator responsible, if any.
    details
        Optional extra context (team name, escalation level, ...).
    """

    alarm_id: str
    transition: AlarmTransition
    severity: AlarmSeverity
    timestamp: datetime
    message: str
    actor: Optional[str] = None
    details: Optional[str] = None
