from __future__ import annotations

import threading
from typing import Optional

import structlog

from alarm_console.core.state_store import StateStore
from alarm_console.notification.notification_thread import NotificationWorkerThread
from alarm_console.runtime.event_bus import EventBus
from alarm_console.runtime.notification_adapter_thread import NotificationAdapterThread
from alarm_console.services.time_mode_controller import TimeModeController

logger = structlog.get_logger(__name__)


class AppRuntime:
    """
    Thread supervisor for the console runtime.

    This class owns:
    - a shared stop event
    - the controller lifecycle (live refresh loop)
    - the notification adapter and worker threads

    Thread Topology
    ---------------
    1) Refresh timers (owned by TimeModeController)
       - fetch the feed and merge it into StateStore
       - listeners (the console) run SLA tracking and publish AlarmEvent
         into EventBus

    2) NotificationAdapterThread (adapter)
       - consumes AlarmEvent from EventBus queue
       - builds webhook payload snapshot from StateStore
       - emits NotificationEvent into NotificationWorkerThread

    3) NotificationWorkerThread (I/O), only when a webhook is configured

    Notes
    -----
    - All threads are daemon threads; `stop()` still joins them for a clean shutdown.
    - Backpressure policy: EventBus and the notification queue drop on
      overload so that the refresh loop never blocks on delivery.
    """

    def __init__(
        self,
        controller: TimeModeController,
        bus: EventBus,
        store: StateStore,
        notifier: Optional[NotificationWorkerThread] = None,
    ):
        self._controller = controller
        self._bus = bus
        self._store = store
        self._notifier = notifier
        self._stop = threading.Event()
        self._started = False

        self._notify_adapter: Optional[NotificationAdapterThread] = None
        if notifier is not None:
            self._notify_adapter = NotificationAdapterThread(
                bus=self._bus,
                store=self._store,
                notifier=notifier,
                stop_event=self._stop,
            )

    @property
    def running(self) -> bool:
        return self._started and not self._stop.is_set()

    def start(self) -> None:
        """
        Start notification threads first, then the refresh loop, so the
        first refresh's SLA events already have a consumer.
        """
        if self._started:
            return
        self._started = True
        if self._notifier is not None:
            self._notifier.start()
        if self._notify_adapter is not None:
            self._notify_adapter.start()
        self._controller.start()
        logger.info("runtime_started", notifications=self._notifier is not None)

    def stop(self) -> None:
        """
        Cancel the refresh loop and stop the notification threads.
        """
        self._controller.shutdown()
        self._stop.set()
        if self._notify_adapter is not None:
            self._notify_adapter.join(timeout=2.0)
        if self._notifier is not None:
            self._notifier.stop()
        logger.info("runtime_stopped", dropped_events=self._bus.dropped)
