from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

import structlog

from alarm_console.config.yaml_config import ConsoleConfig, load_console_config
from alarm_console.core.sla.sla_calculator import SlaPolicy
from alarm_console.core.state_store import StateStore
from alarm_console.core.storm.storm_detector import StormConfig
from alarm_console.domain.models import AlarmSeverity
from alarm_console.feeds.base import AlarmSource, load_static_source
from alarm_console.feeds.synthetic import SyntheticAlarmSource
from alarm_console.logging_config import configure_logging
from alarm_console.notification.base import Notifier
from alarm_console.notification.notification_thread import NotificationWorkerThread
from alarm_console.notification.webhook_notifier import WebhookConfig, WebhookNotifier
from alarm_console.runtime.app_runtime import AppRuntime
from alarm_console.runtime.event_bus import EventBus
from alarm_console.runtime.scheduler import Scheduler, ThreadingScheduler
from alarm_console.services.console import AlarmConsole
from alarm_console.services.time_mode_controller import TimeModeController

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConsoleWiring:
    """Everything a front end needs to run the console."""
    config: ConsoleConfig
    store: StateStore
    controller: TimeModeController
    console: AlarmConsole
    bus: EventBus
    notifier: NotificationWorkerThread
    runtime: AppRuntime


def build_sla_policy(cfg: ConsoleConfig) -> SlaPolicy:
    return SlaPolicy(
        durations={
            AlarmSeverity.CRITICAL: timedelta(minutes=cfg.sla.critical_minutes),
            AlarmSeverity.MAJOR: timedelta(minutes=cfg.sla.major_minutes),
        },
        default=timedelta(minutes=cfg.sla.default_minutes),
        imminent_pct=cfg.sla.imminent_pct,
    )


def build_source(cfg: ConsoleConfig) -> AlarmSource:
    if cfg.feed.kind == "file":
        return load_static_source(cfg.feed.path)
    return SyntheticAlarmSource(count=cfg.feed.count, seed=cfg.feed.seed)


def build_notifier(cfg: ConsoleConfig) -> NotificationWorkerThread:
    notifiers: List[Notifier] = []
    if cfg.webhook is not None:
        auth_header = cfg.webhook.auth_header

        if auth_header and not auth_header.startswith("Bearer "):
            auth_header = f"Bearer {auth_header}"

        notifiers.append(
            WebhookNotifier(
                WebhookConfig(
                    url=cfg.webhook.url,
                    auth_header=auth_header,
                    timeout_s=cfg.webhook.timeout_s,
                    verify_tls=cfg.webhook.verify_tls,
                )
            )
        )
    else:
        logger.info("notifications_disabled", reason="no webhook url configured")
    return NotificationWorkerThread(notifiers=notifiers)


def build_console_system(
    config_path: Optional[str] = None,
    source: Optional[AlarmSource] = None,
    scheduler: Optional[Scheduler] = None,
    config: Optional[ConsoleConfig] = None,
) -> ConsoleWiring:
    """
    Wire the console from configuration.

    ``source``, ``scheduler`` and ``config`` override what the config file
    would produce; tests use them to inject fixtures.
    """
    cfg = config if config is not None else load_console_config(config_path)
    configure_logging(cfg.logging.level, json=cfg.logging.json)

    # --- STATE ---
    store = StateStore()

    # --- FEED ---
    feed = source if source is not None else build_source(cfg)

    # --- NOTIFICATIONS ---
    notifier = build_notifier(cfg)

    # --- EVENT BUS ---
    bus = EventBus()

    # --- CONTROLLER ---
    controller = TimeModeController(
        store=store,
        source=feed,
        scheduler=scheduler if scheduler is not None else ThreadingScheduler(),
        refresh_interval_s=cfg.console.refresh_interval_s,
        snapshot_window=timedelta(minutes=cfg.console.snapshot_default_minutes),
    )

    # --- CONSOLE ---
    console = AlarmConsole(
        store=store,
        controller=controller,
        bus=bus,
        sla_policy=build_sla_policy(cfg),
        storm_config=StormConfig(threshold=cfg.storm.threshold, window_minutes=cfg.storm.window_minutes),
    )

    # --- RUNTIME ---
    runtime = AppRuntime(controller=controller, bus=bus, store=store, notifier=notifier)

    return ConsoleWiring(
        config=cfg,
        store=store,
        controller=controller,
        console=console,
        bus=bus,
        notifier=notifier,
        runtime=runtime,
    )
