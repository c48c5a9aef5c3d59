from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Dict

from alarm_console.core.state_store import StateStore
from alarm_console.domain.events import AlarmEvent


def _iso(ts: datetime) -> str:
    """
    Convert datetime to ISO-8601 string with second precision.

    Parameters
    ----------
    ts
        Timestamp to convert.

    Returns
    -------
    str
        ISO-8601 formatted timestamp (seconds precision).
    """
    return ts.isoformat(timespec="seconds")


def build_alarm_webhook_payload(store: StateStore, ev: AlarmEvent) -> Dict[str, Any]:
    """
    Build a webhook payload for an alarm event plus current store totals.

    The payload includes:
    - "event": the alarm event fields required by downstream consumers
    - "alarm": identification of the affected alarm (when still in the store)
    - "totals": snapshot counters computed from:
      - current alarms (store.snapshot)
      - alarm event history (store.alarm_events)

    Parameters
    ----------
    store
        Alarm state store used to read current alarms and event history.
    ev
        Alarm event that triggered the webhook.

    Returns
    -------
    dict
        Webhook payload dictionary with keys: "type", "event", "alarm" and "totals".
    """
    alarms = store.snapshot
    events = store.alarm_events

    by_severity = Counter(a.severity.value for a in alarms)
    unacknowledged = sum(1 for a in alarms if not a.acknowledged)
    events_by_transition = Counter(e.transition.value for e in events)

    event_payload = {
        "alarm_id": ev.alarm_id,
        "severity": ev.severity.value,
        "transition": ev.transition.value,
        "timestamp": _iso(ev.timestamp),
        "message": ev.message,
        "actor": ev.actor,
        "details": ev.details,
    }

    alarm = store.get(ev.alarm_id)
    alarm_payload = None
    if alarm is not None:
        alarm_payload = {
            "global_alarm_id": alarm.global_alarm_id,
            "title": alarm.title,
            "object_name": alarm.object_name,
            "source_system": alarm.source_system.value,
            "assigned_team": alarm.assigned_team,
            "escalation_level": alarm.escalation_level.value if alarm.escalation_level else None,
            "acknowledged": alarm.acknowledged,
            "created_at": _iso(alarm.created_at),
        }

    totals_payload = {
        "alarms_total": len(alarms),
        "alarms_unacknowledged": unacknowledged,
        "alarm_events_total": len(events),
        "alarm_counts_by_severity": {k: int(v) for k, v in by_severity.items()},
        "event_counts_by_transition": {k: int(v) for k, v in events_by_transition.items()},
    }

    return {
        "type": "alarm_event",
        "event": event_payload,
        "alarm": alarm_payload,
        "totals": totals_payload,
    }
