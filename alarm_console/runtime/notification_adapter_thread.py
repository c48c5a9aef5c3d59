from __future__ import annotations

import threading
from queue import Empty

import structlog

from alarm_console.core.state_store import StateStore
from alarm_console.domain.events import NOTIFIABLE_TRANSITIONS, AlarmEvent
from alarm_console.notification.base import NotificationEvent
from alarm_console.notification.notification_thread import NotificationWorkerThread
from alarm_console.notification.payload import build_alarm_webhook_payload
from alarm_console.runtime.event_bus import EventBus

logger = structlog.get_logger(__name__)


class NotificationAdapterThread:
    """
    Adapter thread that bridges domain AlarmEvent -> NotificationWorkerThread.

    Responsibilities
    ----------------
    - Subscribe to `EventBus.alarm_events_q` (domain events).
    - Skip transitions that are not escalation-relevant.
    - Build a webhook payload snapshot using the current `StateStore`.
    - Emit `NotificationEvent` objects into `NotificationWorkerThread` asynchronously.

    Concurrency Model
    -----------------
    - Runs as a daemon thread.
    - Polls queue with timeout to remain responsive to stop signals.
    - Any exception during payload building or emit is caught and logged.

    Parameters
    ----------
    bus
        Event bus providing AlarmEvent queue.
    store
        StateStore used to build snapshot totals and event payload.
    notifier
        Notification worker responsible for actual sending.
    stop_event
        Stop signal for the thread.
    """

    def __init__(
        self,
        bus: EventBus,
        store: StateStore,
        notifier: NotificationWorkerThread,
        stop_event: threading.Event,
    ):
        self._bus = bus
        self._store = store
        self._notifier = notifier
        self._stop = stop_event
        self._thread = threading.Thread(target=self._run, name="notification-adapter", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def handle(self, ev: AlarmEvent) -> bool:
        """
        Convert one alarm event and hand it to the notifier.

        Returns
        -------
        bool
            True if a notification was emitted.
        """
        if ev.transition not in NOTIFIABLE_TRANSITIONS:
            return False
        payload = build_alarm_webhook_payload(self._store, ev)
        self._notifier.emit(
            NotificationEvent(
                type="alarm_event",
                payload=payload,
                severity=ev.severity.value,
                source=ev.alarm_id,
                ts=ev.timestamp.isoformat(timespec="seconds"),
            )
        )
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                ev: AlarmEvent = self._bus.alarm_events_q.get(timeout=0.5)
            except Empty:
                continue

            try:
                self.handle(ev)
            except Exception as e:
                logger.error("notification_adapter_failed", alarm_id=ev.alarm_id, error=repr(e))
