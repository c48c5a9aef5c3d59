from __future__ import annotations

import sys
import threading
from typing import List, Optional

import structlog

from alarm_console.bootstrap import build_console_system
from alarm_console.services.time_mode_controller import ControllerEvent, ControllerEventKind
from alarm_console.views.snapshots import summary_line

logger = structlog.get_logger(__name__)


def _arg(argv: List[str], flag: str) -> Optional[str]:
    if flag in argv:
        i = argv.index(flag)
        if i + 1 < len(argv):
            return argv[i + 1]
    return None


def main(argv: Optional[List[str]] = None) -> None:
    """
    Run the console headless and log a summary after every refresh.

    Notes
    -----
    - Loads configuration from `config.yaml` by default.
    - Optional CLI usage:
        python -m alarm_console.dev.run_console --config path/to/config.yaml --ticks 3
    - ``--ticks N`` stops after N completed refreshes; without it the runner
      keeps going until interrupted.
    """
    argv = sys.argv[1:] if argv is None else argv
    config_path = _arg(argv, "--config")
    ticks_arg = _arg(argv, "--ticks")
    ticks = int(ticks_arg) if ticks_arg is not None else None

    wiring = build_console_system(config_path=config_path)
    done = threading.Event()
    seen = {"refreshes": 0}

    def _on_event(ev: ControllerEvent) -> None:
        if ev.kind not in (ControllerEventKind.REFRESHED, ControllerEventKind.REFRESH_FAILED):
            return
        logger.info("console_summary", **summary_line(wiring.console.view()))
        if ev.kind == ControllerEventKind.REFRESHED:
            seen["refreshes"] += 1
            if ticks is not None and seen["refreshes"] >= ticks:
                done.set()

    wiring.controller.add_listener(_on_event)
    wiring.runtime.start()
    try:
        done.wait()
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        wiring.runtime.stop()


if __name__ == "__main__":
    main()
