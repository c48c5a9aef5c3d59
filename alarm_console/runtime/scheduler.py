from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class ScheduledTask(Protocol):
    """Handle of a pending callback. Cancelling twice is harmless."""

    def cancel(self) -> None:
        ...

    @property
    def cancelled(self) -> bool:
        ...


class Scheduler(Protocol):
    """
    Protocol for delayed callbacks.

    Methods
    -------
    call_later(delay_s, fn)
        Run ``fn`` once after ``delay_s`` seconds unless cancelled first.
    """

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> ScheduledTask:
        ...


class TimerTask:
    """
    One-shot task backed by a daemon `threading.Timer`.

    The cancellation token is checked again when the timer fires, so a
    callback racing with :meth:`cancel` does not run after it returned.
    """

    def __init__(self, delay_s: float, fn: Callable[[], None], name: str = "refresh-timer"):
        self._fn = fn
        self._cancelled = threading.Event()
        self._timer = threading.Timer(delay_s, self._fire)
        self._timer.name = name
        self._timer.daemon = True

    def start(self) -> "TimerTask":
        self._timer.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _fire(self) -> None:
        if self._cancelled.is_set():
            return
        try:
            self._fn()
        except Exception as e:
            logger.error("scheduled_task_failed", error=repr(e))


class ThreadingScheduler:
    """
    Scheduler running callbacks on short-lived daemon timer threads.

    Parameters
    ----------
    name
        Thread name given to each timer (useful in thread dumps).
    """

    def __init__(self, name: str = "refresh-timer"):
        self._name = name

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerTask:
        return TimerTask(delay_s, fn, name=self._name).start()


def cancel_quietly(task: Optional[ScheduledTask]) -> None:
    if task is not None:
        task.cancel()
