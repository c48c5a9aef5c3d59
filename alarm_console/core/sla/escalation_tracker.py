"""
SLA escalation tracker.

The SLA calculator is stateless; this tracker turns successive per-tick
`SlaStatus` values into discrete `AlarmEvent` transitions so that
notifications fire once per state change instead of once per tick:

- ON_TRACK -> ESCALATION_IMMINENT            => SLA_IMMINENT
- ON_TRACK/ESCALATION_IMMINENT -> ESCALATED  => SLA_BREACHED

An alarm first seen already imminent or escalated emits the matching event
once. A timer moving back to ON_TRACK (acknowledgement re-anchors it) emits
nothing but re-arms the tracker for that alarm.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping

from alarm_console.core.sla.sla_calculator import SlaState, SlaStatus, format_remaining
from alarm_console.domain.events import AlarmEvent, AlarmTransition
from alarm_console.domain.models import Alarm

_RANK = {SlaState.ON_TRACK: 0, SlaState.ESCALATION_IMMINENT: 1, SlaState.ESCALATED: 2}


@dataclass
class SlaEscalationTracker:
    """
    Stateful SLA transition detector.

    Notes
    -----
    Only alarms present in the evaluated snapshot are updated; the tracker
    forgets nothing, since alarms are never deleted by the console.
    """

    _states: Dict[str, SlaState] = field(default_factory=dict)

    def update(self, alarms: Mapping[str, Alarm], statuses: Mapping[str, SlaStatus],
               now: datetime) -> List[AlarmEvent]:
        """
        Apply one tick of SLA statuses.

        Parameters
        ----------
        alarms
            Alarms by id (for severity/title in the events).
        statuses
            SLA status per alarm id for this tick.
        now
            Reference instant of the tick.

        Returns
        -------
        list of AlarmEvent
            SLA_IMMINENT / SLA_BREACHED events produced by this tick.
        """
        events: List[AlarmEvent] = []
        for aid, st in statuses.items():
            prev = self._states.get(aid, SlaState.ON_TRACK)
            self._states[aid] = st.state
            if _RANK[st.state] <= _RANK[prev]:
                continue

            alarm = alarms.get(aid)
            if alarm is None:
                continue
            transition = (AlarmTransition.SLA_BREACHED if st.state == SlaState.ESCALATED
                          else AlarmTransition.SLA_IMMINENT)
            events.append(
                AlarmEvent(
                    alarm_id=aid,
                    transition=transition,
                    severity=alarm.severity,
                    timestamp=now,
                    message=f"{st.timer_label} {format_remaining(st.remaining)} left: {alarm.title}",
                    details=st.sla_level,
                )
            )
        return events

    def state_of(self, alarm_id: str) -> SlaState:
        return self._states.get(alarm_id, SlaState.ON_TRACK)
