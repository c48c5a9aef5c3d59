from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO", json: bool = True) -> None:
    """
    Configure structured logging for the console process.

    Module loggers are created with ``structlog.get_logger(__name__)`` and
    log event names with key/value context. Output goes through stdlib
    logging, rendered as JSON lines or as human-readable console output.

    Parameters
    ----------
    level
        Stdlib level name (DEBUG, INFO, WARNING, ...).
    json
        JSON renderer when True, console renderer otherwise.

    Raises
    ------
    ValueError
        If ``level`` is not a known logging level.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"unknown log level {level!r}")

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=numeric)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
