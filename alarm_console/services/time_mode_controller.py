from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

import structlog

from alarm_console.core.alarm.normalizer import IngestReport
from alarm_console.core.state_store import StateStore
from alarm_console.core.time_mode.time_mode import (
    DEFAULT_SNAPSHOT_WINDOW,
    LIVE_REFRESH_INTERVAL_S,
    DateLike,
    HistoricalPreset,
    TimeModeState,
    TimeRange,
    preset_range,
    utc_now,
)
from alarm_console.domain.errors import InvalidTimeRangeError, TimeModeError
from alarm_console.domain.models import TimeMode
from alarm_console.feeds.base import AlarmSource, HistoricalAlarmSource
from alarm_console.runtime.scheduler import ScheduledTask, Scheduler, cancel_quietly

logger = structlog.get_logger(__name__)


class ControllerEventKind(str, Enum):
    TRANSITION = "transition"
    RANGE_CHANGED = "range_changed"
    PAUSE_CHANGED = "pause_changed"
    REFRESHED = "refreshed"
    REFRESH_FAILED = "refresh_failed"


@dataclass(frozen=True)
class ControllerEvent:
    """
    Notification delivered to controller listeners.

    Parameters
    ----------
    kind
        What happened.
    state
        Controller state right after it happened.
    report
        Ingest report for REFRESHED events (and historical loads).
    error
        Failure description for REFRESH_FAILED.
    """

    kind: ControllerEventKind
    state: TimeModeState
    report: Optional[IngestReport] = None
    error: Optional[str] = None


ControllerListener = Callable[[ControllerEvent], None]


class TimeModeController:
    """
    State machine deciding when the alarm store refreshes and what "now" is.

    States
    ------
    - LIVE: periodic re-ingest from the feed every ``refresh_interval_s``
      unless paused; "now" is the wall clock.
    - SNAPSHOT: frozen window, no refresh; "now" is the window end.
    - HISTORICAL: replay of a past range, no refresh; "now" is the range end.

    Transitions are operator-driven and always allowed. Every transition:
    - cancels the pending refresh task and invalidates any tick in flight
    - resets ``is_refreshing`` and ``is_paused`` to False
    - sets ``last_refresh`` to "now" in the new mode's frame

    Cancellation
    ------------
    Each scheduled tick captures the generation counter current at scheduling
    time. Transitions, pause and shutdown bump the counter, so a tick that was
    already running when they happened discards its result instead of
    applying a stale refresh to a frozen view.

    Failure semantics
    -----------------
    A failing fetch is logged, clears ``is_refreshing``, keeps
    ``last_refresh`` and lets the next tick retry. It never changes the mode.

    Parameters
    ----------
    store
        Alarm working set, refreshed by ingesting the feed.
    source
        Alarm feed. Historical replay uses ``fetch_range`` when available.
    scheduler
        Delayed-callback provider for the live refresh loop.
    clock
        Wall-clock provider (aware UTC).
    refresh_interval_s
        Live refresh period.
    snapshot_window
        Default snapshot span ending at the captured instant.
    """

    def __init__(
        self,
        store: StateStore,
        source: AlarmSource,
        scheduler: Scheduler,
        clock: Callable[[], datetime] = utc_now,
        refresh_interval_s: float = LIVE_REFRESH_INTERVAL_S,
        snapshot_window: timedelta = DEFAULT_SNAPSHOT_WINDOW,
    ):
        if refresh_interval_s <= 0:
            raise ValueError("refresh_interval_s must be positive")
        self._store = store
        self._source = source
        self._scheduler = scheduler
        self._clock = clock
        self._interval_s = refresh_interval_s
        self._snapshot_window = snapshot_window

        self._lock = threading.RLock()
        self._state = TimeModeState(mode=TimeMode.LIVE, last_refresh=clock())
        self._task: Optional[ScheduledTask] = None
        self._generation = 0
        self._running = False
        self._listeners: List[ControllerListener] = []

    # --- Queries ---
    @property
    def state(self) -> TimeModeState:
        with self._lock:
            return self._state

    @property
    def mode(self) -> TimeMode:
        return self.state.mode

    @property
    def refresh_interval_s(self) -> float:
        return self._interval_s

    @property
    def has_pending_refresh(self) -> bool:
        with self._lock:
            return self._task is not None and not self._task.cancelled

    def reference_now(self) -> datetime:
        """
        The instant SLA timers and storm windows are computed against.

        Returns
        -------
        datetime
            Wall clock in LIVE; range end in SNAPSHOT/HISTORICAL.
        """
        with self._lock:
            return self._reference_now(self._state)

    def add_listener(self, listener: ControllerListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    # --- Lifecycle ---
    def start(self) -> None:
        """
        Begin operation. In LIVE mode this refreshes once and schedules the
        periodic loop.
        """
        with self._lock:
            if self._running:
                return
            self._running = True
            gen = self._generation
        self._tick(gen)

    def shutdown(self) -> None:
        """Cancel the refresh loop. Safe to call more than once."""
        with self._lock:
            self._running = False
            self._generation += 1
            cancel_quietly(self._task)
            self._task = None
            if self._state.is_refreshing:
                self._state = dataclasses.replace(self._state, is_refreshing=False)
        logger.info("time_mode_controller_stopped")

    # --- Transitions ---
    def switch_to_live(self) -> TimeModeState:
        self._transition(TimeMode.LIVE)
        with self._lock:
            gen = self._generation
            run = self._running
        if run:
            self._tick(gen)
        return self.state

    def switch_to_snapshot(self, start: Optional[DateLike] = None, end: Optional[DateLike] = None) -> TimeModeState:
        """
        Freeze the view.

        Parameters
        ----------
        start, end
            Optional window. When both are omitted the window is the
            ``snapshot_window`` ending at the captured instant.

        Raises
        ------
        InvalidTimeRangeError
            If only one bound is given, or the bounds are invalid. The mode
            is left unchanged.
        """
        captured = self._clock()
        rng = self._resolve_range(start, end, default_end=captured, default_span=self._snapshot_window)
        return self._transition(TimeMode.SNAPSHOT, snapshot_range=rng, snapshot_captured_at=captured)

    def switch_to_historical(
        self,
        preset: HistoricalPreset = HistoricalPreset.LAST_24H,
        rng: Optional[TimeRange] = None,
    ) -> TimeModeState:
        """
        Replay a past range.

        Parameters
        ----------
        preset
            Quick range ending now; ignored when ``rng`` is given.
        rng
            Custom range.

        Raises
        ------
        InvalidTimeRangeError
            For an invalid custom range, or CUSTOM without a range.
        """
        if rng is not None:
            self._validate(rng)
            preset = HistoricalPreset.CUSTOM
        else:
            rng = preset_range(preset, self._clock())
        self._transition(TimeMode.HISTORICAL, historical_range=rng, historical_preset=preset)
        self._load_historical(rng)
        return self.state

    # --- Range / pause changes (not transitions) ---
    def set_snapshot_range(self, start: DateLike, end: DateLike) -> TimeModeState:
        """
        Change the frozen window.

        Raises
        ------
        TimeModeError
            Outside SNAPSHOT mode.
        InvalidTimeRangeError
            If the range is invalid; the previous range is kept.
        """
        rng = TimeRange.of(start, end)
        with self._lock:
            if self._state.mode != TimeMode.SNAPSHOT:
                raise TimeModeError("snapshot range can only be set in snapshot mode")
            self._state = dataclasses.replace(self._state, snapshot_range=rng, last_refresh=rng.end)
            state = self._state
        self._notify(ControllerEvent(kind=ControllerEventKind.RANGE_CHANGED, state=state))
        return state

    def set_historical_range(self, rng: TimeRange) -> TimeModeState:
        """
        Replay a custom range.

        Raises
        ------
        TimeModeError
            Outside HISTORICAL mode.
        InvalidTimeRangeError
            If the range is invalid; the previous range is kept.
        """
        self._validate(rng)
        return self._change_historical(rng, HistoricalPreset.CUSTOM)

    def set_historical_preset(self, preset: HistoricalPreset) -> TimeModeState:
        """Replay the preset range ending now (HISTORICAL mode only)."""
        return self._change_historical(preset_range(preset, self._clock()), preset)

    def set_paused(self, paused: bool) -> TimeModeState:
        """
        Pause or resume auto-refresh without changing mode.

        Raises
        ------
        TimeModeError
            Outside LIVE mode.
        """
        with self._lock:
            if self._state.mode != TimeMode.LIVE:
                raise TimeModeError("pause is only available in live mode")
            if self._state.is_paused == paused:
                return self._state
            self._generation += 1
            cancel_quietly(self._task)
            self._task = None
            self._state = dataclasses.replace(self._state, is_paused=paused, is_refreshing=False)
            state = self._state
            gen = self._generation
            run = self._running
        logger.info("live_refresh_paused" if paused else "live_refresh_resumed")
        self._notify(ControllerEvent(kind=ControllerEventKind.PAUSE_CHANGED, state=state))
        if not paused and run:
            self._tick(gen)
        return self.state

    def toggle_pause(self) -> TimeModeState:
        return self.set_paused(not self.state.is_paused)

    # --- Refresh ---
    def refresh_now(self) -> Optional[ControllerEvent]:
        """
        Run one refresh immediately.

        Returns
        -------
        ControllerEvent or None
            REFRESHED / REFRESH_FAILED, or None when refresh is not allowed
            (not LIVE, or paused).
        """
        with self._lock:
            if not self._state.auto_refresh_allowed:
                logger.debug("refresh_skipped", mode=self._state.mode.value, paused=self._state.is_paused)
                return None
            gen = self._generation
        return self._refresh(gen)

    # -------------------------
    # Internals
    # -------------------------
    def _reference_now(self, state: TimeModeState) -> datetime:
        if state.mode == TimeMode.SNAPSHOT and state.snapshot_range is not None:
            return state.snapshot_range.end
        if state.mode == TimeMode.HISTORICAL and state.historical_range is not None:
            return state.historical_range.end
        return self._clock()

    @staticmethod
    def _validate(rng: TimeRange) -> None:
        if not rng.start < rng.end:
            raise InvalidTimeRangeError("range start must be before end")

    @staticmethod
    def _resolve_range(start: Optional[DateLike], end: Optional[DateLike],
                       default_end: datetime, default_span: timedelta) -> TimeRange:
        if start is None and end is None:
            return TimeRange(start=default_end - default_span, end=default_end)
        if start is None or end is None:
            raise InvalidTimeRangeError("both start and end are required")
        return TimeRange.of(start, end)

    def _transition(self, mode: TimeMode, **fields) -> TimeModeState:
        with self._lock:
            prev = self._state.mode
            self._generation += 1
            cancel_quietly(self._task)
            self._task = None
            draft = TimeModeState(mode=mode, last_refresh=self._clock(), **fields)
            self._state = dataclasses.replace(draft, last_refresh=self._reference_now(draft))
            state = self._state
        logger.info("time_mode_changed", from_mode=prev.value, to_mode=mode.value)
        self._notify(ControllerEvent(kind=ControllerEventKind.TRANSITION, state=state))
        return state

    def _change_historical(self, rng: TimeRange, preset: HistoricalPreset) -> TimeModeState:
        with self._lock:
            if self._state.mode != TimeMode.HISTORICAL:
                raise TimeModeError("historical range can only be set in historical mode")
            self._generation += 1
            self._state = dataclasses.replace(
                self._state, historical_range=rng, historical_preset=preset,
                last_refresh=rng.end, is_refreshing=False,
            )
            state = self._state
        self._notify(ControllerEvent(kind=ControllerEventKind.RANGE_CHANGED, state=state))
        self._load_historical(rng)
        return self.state

    def _load_historical(self, rng: TimeRange) -> None:
        if not isinstance(self._source, HistoricalAlarmSource):
            return
        with self._lock:
            gen = self._generation
        try:
            records = self._source.fetch_range(rng)
        except Exception as e:
            logger.warning("historical_load_failed", error=repr(e), start=rng.start.isoformat(), end=rng.end.isoformat())
            return
        with self._lock:
            if gen != self._generation:
                return
            report = self._store.ingest(records, now=rng.end)
            state = self._state
        logger.info("historical_range_loaded", accepted=len(report.accepted), rejected=len(report.rejected))
        self._notify(ControllerEvent(kind=ControllerEventKind.REFRESHED, state=state, report=report))

    def _schedule(self, gen: int) -> None:
        # Caller holds the lock.
        cancel_quietly(self._task)
        self._task = self._scheduler.call_later(self._interval_s, lambda: self._tick(gen))

    def _tick(self, gen: int) -> None:
        with self._lock:
            if gen != self._generation or not self._running:
                return
            self._task = None
            if not self._state.auto_refresh_allowed:
                return

        try:
            self._refresh(gen)
        finally:
            with self._lock:
                if gen == self._generation and self._running and self._state.auto_refresh_allowed:
                    self._schedule(gen)

    def _refresh(self, gen: int) -> Optional[ControllerEvent]:
        with self._lock:
            if gen != self._generation:
                return None
            self._state = dataclasses.replace(self._state, is_refreshing=True)

        try:
            records = list(self._source.fetch())
            with self._lock:
                if gen != self._generation:
                    logger.debug("stale_refresh_discarded")
                    return None
                now = self._clock()
                report = self._store.ingest(records, now=now)
                self._state = dataclasses.replace(self._state, is_refreshing=False, last_refresh=now)
                state = self._state
        except Exception as e:
            return self._refresh_failed(gen, e)

        logger.info("refresh_completed", accepted=len(report.accepted), rejected=len(report.rejected),
                    repaired=len(report.repaired))
        event = ControllerEvent(kind=ControllerEventKind.REFRESHED, state=state, report=report)
        self._notify(event)
        return event

    def _refresh_failed(self, gen: int, error: Exception) -> Optional[ControllerEvent]:
        with self._lock:
            if gen != self._generation:
                return None
            self._state = dataclasses.replace(self._state, is_refreshing=False)
            state = self._state
        logger.warning("refresh_failed", error=repr(error), last_refresh=state.last_refresh.isoformat())
        event = ControllerEvent(kind=ControllerEventKind.REFRESH_FAILED, state=state, error=repr(error))
        self._notify(event)
        return event

    def _notify(self, event: ControllerEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error("controller_listener_failed", kind=event.kind.value, error=repr(e))
