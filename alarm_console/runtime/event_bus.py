from __future__ import annotations

from dataclasses import dataclass, field
from queue import Full, Queue

import structlog

from alarm_console.domain.events import AlarmEvent

logger = structlog.get_logger(__name__)


@dataclass
class EventBus:
    """
    In-process event bus for escalation-relevant alarm events.

    The bus provides a simple producer/consumer mechanism:
    - Producers (the console) publish :class:`~alarm_console.domain.events.AlarmEvent`
      via :meth:`publish_alarm`.
    - Consumers (the notification adapter thread) read from :attr:`alarm_events_q`.

    Concurrency Model
    -----------------
    Python's :class:`queue.Queue` is thread-safe. Multiple producers may call
    :meth:`publish_alarm` concurrently without additional locking.

    Backpressure Policy
    -------------------
    If the queue is full, events are dropped (best-effort). Notification
    delivery problems must never block the refresh loop or operator commands.

    Attributes
    ----------
    alarm_events_q
        Bounded queue of alarm events. Consumers should drain this queue in a loop.
    dropped
        Number of events dropped because the queue was full.
    """

    alarm_events_q: "Queue[AlarmEvent]" = field(default_factory=lambda: Queue(maxsize=5000))
    dropped: int = 0

    def publish_alarm(self, ev: AlarmEvent) -> None:
        """
        Publish an alarm event to the queue (non-blocking).

        Parameters
        ----------
        ev
            AlarmEvent to publish.
        """
        try:
            self.alarm_events_q.put_nowait(ev)
        except Full:
            self.dropped += 1
            logger.warning("event_bus_overloaded", alarm_id=ev.alarm_id, transition=ev.transition.value,
                           dropped=self.dropped)
