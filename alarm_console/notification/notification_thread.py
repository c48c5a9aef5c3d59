from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import List

import structlog

from alarm_console.notification.base import NotificationEvent, Notifier

logger = structlog.get_logger(__name__)

_STOP = "__stop__"


@dataclass(frozen=True)
class NotificationThreadConfig:
    max_queue: int = 2000
    retry_count: int = 3
    retry_backoff_s: float = 0.5
    poll_timeout_s: float = 0.5


class NotificationWorkerThread:
    """
    Background delivery of notification events to every configured notifier.

    Each event is tried ``retry_count + 1`` times per notifier with
    exponential backoff. Failures after the last attempt are logged and the
    event is dropped; delivery never blocks the emitter.
    """

    def __init__(self, notifiers: List[Notifier], cfg: NotificationThreadConfig | None = None):
        self._notifiers = notifiers
        self._cfg = cfg or NotificationThreadConfig()
        self._q: "queue.Queue[NotificationEvent]" = queue.Queue(maxsize=self._cfg.max_queue)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="notification-worker", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        try:
            self._q.put_nowait(NotificationEvent(type=_STOP, payload={}))
        except queue.Full:
            pass
        if self._thread.is_alive():
            self._thread.join(timeout=2.0)

    def emit(self, event: NotificationEvent) -> None:
        try:
            self._q.put_nowait(event)
        except queue.Full:
            logger.warning("notification_queue_full", type=event.type, source=event.source)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._q.get(timeout=self._cfg.poll_timeout_s)
            except queue.Empty:
                continue

            if event.type == _STOP:
                break

            for notifier in self._notifiers:
                self._send_with_retries(notifier, event)

    def _send_with_retries(self, notifier: Notifier, event: NotificationEvent) -> bool:
        for attempt in range(self._cfg.retry_count + 1):
            try:
                notifier.notify(event)
                return True
            except Exception as e:
                if attempt >= self._cfg.retry_count:
                    logger.error("notification_delivery_failed", type=event.type, source=event.source,
                                 attempts=attempt + 1, error=repr(e))
                    return False
                time.sleep(self._cfg.retry_backoff_s * (2 ** attempt))
        return False
