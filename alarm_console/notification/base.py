from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class NotificationEvent:
    """
    Notification event contract used by the notification layer.

    A 'NotificationEvent' is a transport message that can be sent to
    one or more notifiers. It represents *what should be communicated*,
    not *how* it is delivered.

    Parameters
    ----------
    type
        Event type identifier (e.g., "alarm_event").
    payload
        Structured payload containing event data.
    severity
        Optional alarm severity label (e.g., "critical").
    source
        Optional alarm id the notification is about.
    ts
        Optional ISO-8601 timestamp of the underlying event.
    """

    type: str
    payload: Dict[str, Any]
    severity: Optional[str] = None
    source: Optional[str] = None
    ts: Optional[str] = None


class Notifier(Protocol):
    """
    Protocol interface for notification delivery.

    Any notifier implementation can be used if it provides a 'notify(event)'
    method with the correct signature.

    Methods
    -------
    notify(event)
        Deliver a notification event. Raise on failure so the worker can retry.
    """

    def notify(self, event: NotificationEvent) -> None:
        ...
