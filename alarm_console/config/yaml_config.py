from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "ALARM_CONSOLE_CONFIG"
FEED_KINDS = ("synthetic", "file")


@dataclass(frozen=True)
class ConsoleSettings:
    """Refresh loop and snapshot defaults."""
    refresh_interval_s: float = 5.0
    snapshot_default_minutes: float = 30.0


@dataclass(frozen=True)
class SlaSettings:
    """SLA durations per severity and the imminent threshold."""
    critical_minutes: float = 15.0
    major_minutes: float = 30.0
    default_minutes: float = 60.0
    imminent_pct: float = 25.0


@dataclass(frozen=True)
class StormSettings:
    """Storm threshold (alarms) within a window (minutes)."""
    threshold: int = 1000
    window_minutes: float = 3.0


@dataclass(frozen=True)
class FeedSettings:
    """
    Alarm feed selection.

    kind
        "synthetic" (seeded demo generator) or "file" (JSON list of records).
    """
    kind: str = "synthetic"
    count: int = 80
    seed: Optional[int] = 123
    path: Optional[str] = None


@dataclass(frozen=True)
class WebhookConfigData:
    """Webhook notifier configuration (URL + auth)."""
    url: str
    auth_header: Optional[str] = None
    timeout_s: float = 3.0
    verify_tls: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    json: bool = True


@dataclass(frozen=True)
class ConsoleConfig:
    """
    Root console configuration loaded from YAML.

    Every section is optional; a missing section takes its defaults. The
    webhook section is the only one without defaults: without it,
    notifications are disabled.
    """
    console: ConsoleSettings
    sla: SlaSettings
    storm: StormSettings
    feed: FeedSettings
    webhook: Optional[WebhookConfigData]
    logging: LoggingSettings


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must contain a YAML mapping at the root")
    return data


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = raw.get(name)
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return sec


def _positive(value: float, what: str) -> float:
    if value <= 0:
        raise ValueError(f"{what} must be positive, got {value}")
    return value


def _resolve_default_config_path() -> Path:
    """
    Resolve config.yaml location.

    Priority:
    1) ALARM_CONSOLE_CONFIG env var if provided
    2) config.yaml next to the executable
    3) ./config.yaml in current working directory
    """
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()

    exe_dir = Path(sys.executable).resolve().parent
    candidate = exe_dir / "config.yaml"
    if candidate.exists():
        return candidate

    return Path("config.yaml").resolve()


def parse_console_config(raw: Dict[str, Any]) -> ConsoleConfig:
    """
    Convert a raw YAML mapping into typed config objects.

    Raises
    ------
    ValueError
        If a value has the wrong type or is out of range.
    """
    try:
        # ---- console ----
        c = _section(raw, "console")
        console = ConsoleSettings(
            refresh_interval_s=_positive(float(c.get("refresh_interval_s", 5.0)), "console.refresh_interval_s"),
            snapshot_default_minutes=_positive(
                float(c.get("snapshot_default_minutes", 30.0)), "console.snapshot_default_minutes"
            ),
        )

        # ---- sla ----
        s = _section(raw, "sla")
        sla = SlaSettings(
            critical_minutes=_positive(float(s.get("critical_minutes", 15.0)), "sla.critical_minutes"),
            major_minutes=_positive(float(s.get("major_minutes", 30.0)), "sla.major_minutes"),
            default_minutes=_positive(float(s.get("default_minutes", 60.0)), "sla.default_minutes"),
            imminent_pct=float(s.get("imminent_pct", 25.0)),
        )
        if not 0 <= sla.imminent_pct <= 100:
            raise ValueError("sla.imminent_pct must be within 0..100")

        # ---- storm ----
        st = _section(raw, "storm")
        storm = StormSettings(
            threshold=int(st.get("threshold", 1000)),
            window_minutes=_positive(float(st.get("window_minutes", 3.0)), "storm.window_minutes"),
        )
        if storm.threshold < 0:
            raise ValueError("storm.threshold must not be negative")

        # ---- feed ----
        f = _section(raw, "feed")
        seed = f.get("seed", 123)
        feed = FeedSettings(
            kind=str(f.get("kind", "synthetic")),
            count=int(f.get("count", 80)),
            seed=None if seed is None else int(seed),
            path=None if f.get("path") is None else str(f["path"]),
        )
        if feed.kind not in FEED_KINDS:
            raise ValueError(f"feed.kind must be one of {FEED_KINDS}, got {feed.kind!r}")
        if feed.kind == "file" and not feed.path:
            raise ValueError("feed.path is required when feed.kind is 'file'")

        # ---- webhook ----
        w = _section(raw, "webhook")
        webhook = None
        if w.get("url"):
            webhook = WebhookConfigData(
                url=str(w["url"]),
                auth_header=w.get("auth_header"),
                timeout_s=float(w.get("timeout_s", 3.0)),
                verify_tls=bool(w.get("verify_tls", True)),
            )

        # ---- logging ----
        lg = _section(raw, "logging")
        log = LoggingSettings(
            level=str(lg.get("level", "INFO")).upper(),
            json=bool(lg.get("json", True)),
        )
    except (TypeError, KeyError) as e:
        raise ValueError(f"invalid config value: {e}") from e

    return ConsoleConfig(console=console, sla=sla, storm=storm, feed=feed, webhook=webhook, logging=log)


def load_console_config(path: Optional[str] = None) -> ConsoleConfig:
    """
    Load console configuration from YAML and convert into typed config objects.

    Parameters
    ----------
    path
        Explicit path to config.yaml. If None, uses default resolution.

    Returns
    -------
    ConsoleConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If required fields are missing or invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    return parse_console_config(_read_yaml(cfg_path))
