from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from alarm_console.core.filtering.filter_engine import (
    AlarmSummary,
    FilterState,
    HierarchyFilter,
    filter_alarms,
    summarize,
)
from alarm_console.core.sla.escalation_tracker import SlaEscalationTracker
from alarm_console.core.sla.sla_calculator import DEFAULT_SLA_POLICY, SlaPolicy, SlaStatus, compute_sla_many
from alarm_console.core.state_store import StateStore
from alarm_console.core.storm.storm_detector import StormAssessment, StormConfig, assess_storm
from alarm_console.core.time_mode.time_mode import (
    TimeModeState,
    allows_live_duration_increment,
    mode_banner_text,
    mode_opacity_multiplier,
    should_lock_ui,
)
from alarm_console.domain.errors import InvalidFilterError, TimeModeError
from alarm_console.domain.events import AlarmEvent, AlarmTransition
from alarm_console.domain.models import Alarm, CommentTag, EscalationLevel, TimeMode
from alarm_console.export.csv_export import to_csv
from alarm_console.runtime.event_bus import EventBus
from alarm_console.services.time_mode_controller import (
    ControllerEvent,
    ControllerEventKind,
    TimeModeController,
)

logger = structlog.get_logger(__name__)

TEAMS = ("NOC Team A", "NOC Team B", "Field Support", "Engineering")

# A live view is stale once this many refresh intervals passed without a
# successful refresh.
STALE_AFTER_INTERVALS = 2


@dataclass(frozen=True)
class ConsoleView:
    """
    Everything a renderer needs for one frame of the alarm console.

    Parameters
    ----------
    time_mode
        Controller state the view was computed under.
    reference_now
        Instant used for durations, SLA timers and storm windows.
    alarms
        Filtered alarms, store order.
    sla
        SLA status per id of every filtered alarm.
    storm
        Storm assessment over the whole (unfiltered) visible set.
    summary
        Counts over the filtered alarms.
    stale
        True in live mode when refreshes have been failing.
    banner
        Mode banner text.
    locked
        True in snapshot mode; operator commands are rejected.
    durations_ticking
        Whether alarm ages advance with the wall clock (live mode only).
    opacity
        Dimming factor a renderer applies to the alarm list.
    """

    time_mode: TimeModeState
    reference_now: datetime
    alarms: List[Alarm]
    sla: Dict[str, SlaStatus]
    storm: StormAssessment
    summary: AlarmSummary
    stale: bool
    banner: str
    locked: bool = False
    durations_ticking: bool = True
    opacity: float = 1.0


class AlarmConsole:
    """
    Operator-facing facade over store, controller and derived views.

    Responsibilities
    ----------------
    - Hold the operator's filter state, hierarchy drill-down and expert-mode toggle.
    - Forward operator commands (acknowledge, assign, comment, escalate) to the store.
    - Publish escalation-relevant events onto the `EventBus`.
    - Track SLA transitions after each live refresh.

    The SLA tracker runs only for live refreshes: snapshot and historical
    views recompute SLA figures for display but never notify. A snapshot is
    read-only: acknowledge, assign, comment and escalate raise
    `TimeModeError` until the operator leaves snapshot mode.

    Parameters
    ----------
    store
        Thread-safe alarm store.
    controller
        Time-mode controller; the console registers itself as a listener.
    bus
        Event bus receiving notifiable events.
    sla_policy
        SLA durations and imminent threshold.
    storm_config
        Storm threshold and window.
    """

    def __init__(
        self,
        store: StateStore,
        controller: TimeModeController,
        bus: EventBus,
        sla_policy: SlaPolicy = DEFAULT_SLA_POLICY,
        storm_config: StormConfig = StormConfig(),
    ):
        self._store = store
        self._controller = controller
        self._bus = bus
        self._sla_policy = sla_policy
        self._storm_config = storm_config
        self._tracker = SlaEscalationTracker()

        self._lock = threading.Lock()
        self._filter_state = FilterState.default()
        self._hierarchy = HierarchyFilter()
        self._expert_mode = False

        controller.add_listener(self._on_controller_event)

    # --- Filter state ---
    @property
    def filter_state(self) -> FilterState:
        return self._filter_state

    @filter_state.setter
    def filter_state(self, value: FilterState) -> None:
        if not isinstance(value, FilterState):
            raise InvalidFilterError(f"expected FilterState, got {type(value).__name__}")
        with self._lock:
            self._filter_state = value

    @property
    def hierarchy_filter(self) -> HierarchyFilter:
        return self._hierarchy

    def toggle_hierarchy(self, level: str, value: str) -> HierarchyFilter:
        with self._lock:
            self._hierarchy = self._hierarchy.toggled(level, value)
            return self._hierarchy

    def clear_hierarchy(self) -> None:
        with self._lock:
            self._hierarchy = HierarchyFilter()

    # --- Expert mode ---
    @property
    def expert_mode(self) -> bool:
        return self._expert_mode

    def set_expert_mode(self, enabled: bool) -> None:
        self._expert_mode = bool(enabled)

    def vendor_fields(self, alarm: Alarm) -> Optional[Dict[str, Any]]:
        """Raw vendor payload of ``alarm``, or None outside expert mode."""
        if not self._expert_mode:
            return None
        return dict(alarm.raw_vendor_data)

    # --- Operator commands ---
    def _ensure_editable(self) -> None:
        mode = self._controller.mode
        if should_lock_ui(mode):
            raise TimeModeError(f"operator commands are disabled in {mode.value} mode")

    def acknowledge(self, ids: Iterable[str], actor: str) -> List[str]:
        self._ensure_editable()
        changed = self._store.acknowledge(ids, actor=actor, now=self._controller.reference_now())
        logger.info("alarms_acknowledged", actor=actor, count=len(changed))
        return changed

    def assign(self, ids: Iterable[str], team: str, actor: Optional[str] = None) -> List[str]:
        self._ensure_editable()
        changed = self._store.assign(ids, team=team, now=self._controller.reference_now(), actor=actor)
        logger.info("alarms_assigned", team=team, count=len(changed))
        return changed

    def add_comment(self, ids: Iterable[str], text: str, actor: str,
                    tag: Optional[CommentTag] = None) -> List[str]:
        self._ensure_editable()
        changed = self._store.add_comment(ids, text=text, tag=tag, actor=actor,
                                          now=self._controller.reference_now())
        logger.info("alarms_commented", actor=actor, count=len(changed))
        return changed

    def escalate(self, ids: Iterable[str], level: EscalationLevel, actor: str) -> List[str]:
        """
        Set the escalation level and notify.

        Alarms that are not major/critical are skipped. One ESCALATION_SET
        event per changed alarm is published onto the bus.
        """
        self._ensure_editable()
        now = self._controller.reference_now()
        changed = self._store.set_escalation_level(ids, level=level, actor=actor, now=now)
        for aid in changed:
            alarm = self._store.get(aid)
            if alarm is None:
                continue
            self._bus.publish_alarm(
                AlarmEvent(
                    alarm_id=aid,
                    transition=AlarmTransition.ESCALATION_SET,
                    severity=alarm.severity,
                    timestamp=now,
                    message=f"Escalated to {level.value}: {alarm.title}",
                    actor=actor,
                    details=level.value,
                )
            )
        logger.info("alarms_escalated", actor=actor, level=level.value, count=len(changed))
        return changed

    # --- Export ---
    def export_rows(self, ids: Iterable[str]) -> Tuple[Tuple[str, ...], List[Tuple[str, ...]]]:
        table = self._store.bulk_export(ids, now=self._controller.reference_now())
        return table.columns, table.rows

    def export_csv(self, ids: Iterable[str]) -> str:
        table = self._store.bulk_export(ids, now=self._controller.reference_now())
        return to_csv(table)

    # --- View ---
    def visible_alarms(self, state: TimeModeState, now: datetime) -> List[Alarm]:
        """
        Store snapshot restricted to the current time frame.

        - LIVE: every alarm.
        - SNAPSHOT: alarms that existed at the captured instant.
        - HISTORICAL: alarms raised within the range.
        """
        alarms = self._store.snapshot
        if state.mode == TimeMode.HISTORICAL and state.historical_range is not None:
            return [a for a in alarms if state.historical_range.contains(a.created_at)]
        if state.mode == TimeMode.SNAPSHOT:
            return [a for a in alarms if a.created_at <= now]
        return alarms

    def view(self) -> ConsoleView:
        state = self._controller.state
        now = self._controller.reference_now()
        with self._lock:
            fs, hierarchy = self._filter_state, self._hierarchy

        visible = self.visible_alarms(state, now)
        filtered = filter_alarms(visible, fs, hierarchy)
        sla = compute_sla_many(filtered, now, self._sla_policy)

        return ConsoleView(
            time_mode=state,
            reference_now=now,
            alarms=filtered,
            sla=sla,
            storm=assess_storm(visible, now, self._storm_config),
            summary=summarize(filtered),
            stale=self._is_stale(state, now),
            banner=mode_banner_text(state),
            locked=should_lock_ui(state.mode),
            durations_ticking=allows_live_duration_increment(state.mode),
            opacity=mode_opacity_multiplier(state.mode),
        )

    def _is_stale(self, state: TimeModeState, now: datetime) -> bool:
        if state.mode != TimeMode.LIVE or state.is_paused:
            return False
        age = (now - state.last_refresh).total_seconds()
        return age > self._controller.refresh_interval_s * STALE_AFTER_INTERVALS

    # --- SLA tracking ---
    def _on_controller_event(self, event: ControllerEvent) -> None:
        if event.kind != ControllerEventKind.REFRESHED or event.state.mode != TimeMode.LIVE:
            return
        self.check_sla(event.state.last_refresh)

    def check_sla(self, now: datetime) -> List[AlarmEvent]:
        """Run the SLA tracker over the store and publish the resulting events."""
        index = self._store.alarm_index
        statuses = compute_sla_many((a for a in index.values() if a.is_escalation_eligible), now, self._sla_policy)
        with self._lock:
            events = self._tracker.update(index, statuses, now)
        for ev in events:
            self._bus.publish_alarm(ev)
        if events:
            logger.info("sla_transitions", count=len(events))
        return events
