from __future__ import annotations

from typing import Dict, List, Tuple

from alarm_console.core.sla.sla_calculator import format_remaining
from alarm_console.core.state_store import StateStore
from alarm_console.core.time_mode.time_mode import format_duration
from alarm_console.services.console import ConsoleView

AlarmRow = Tuple[str, str, str, str, str, str, str]
EventRow = Tuple[str, str, str, str, str]


def alarm_rows(view: ConsoleView, limit: int = 200) -> List[AlarmRow]:
    """
    Rows for the alarm list: id, severity, title, object, age, team, SLA.

    The SLA column is empty for alarms without an SLA timer.
    """
    rows: List[AlarmRow] = []
    for a in view.alarms[:limit]:
        sla = view.sla.get(a.global_alarm_id)
        sla_text = "" if sla is None else f"{sla.state.value} {format_remaining(sla.remaining)}"
        rows.append(
            (
                a.global_alarm_id,
                a.severity.value,
                a.title,
                a.object_name,
                format_duration(a.duration(view.reference_now)),
                a.assigned_team or "",
                sla_text,
            )
        )
    return rows


def event_rows(store: StateStore, limit: int = 200) -> List[EventRow]:
    """Audit trail rows, newest first."""
    rows: List[EventRow] = []
    for e in reversed(store.alarm_events[-limit:]):
        rows.append(
            (
                e.timestamp.strftime("%H:%M:%S"),
                e.alarm_id,
                e.transition.value,
                e.actor or "",
                e.message,
            )
        )
    return rows


def summary_line(view: ConsoleView) -> Dict[str, object]:
    """Flat key/value summary of a view, suitable for structured logging."""
    s = view.summary
    return {
        "mode": view.time_mode.mode.value,
        "banner": view.banner,
        "total": s.total,
        "critical": s.critical,
        "major": s.major,
        "unacknowledged": s.unacknowledged,
        "storm": view.storm.is_storm,
        "rate_per_minute": view.storm.rate_per_minute,
        "stale": view.stale,
        "locked": view.locked,
    }
