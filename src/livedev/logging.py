"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Literal, TextIO

import structlog
from structlog.typing import Processor

LogFormat = Literal["json", "console"]

# Library loggers that are only interesting while debugging livedev itself.
NOISY_LOGGERS = ("watchdog", "httpx", "httpcore")


def open_log_stream(log_file: str = "") -> TextIO:
    """Open the log destination.

    Args:
        log_file: File appended to, line-buffered; empty means stdout.

    Returns:
        Writable text stream.
    """
    if not log_file:
        return sys.stdout
    return open(log_file, "a", encoding="utf-8", buffering=1)  # noqa: SIM115


def build_renderer(log_format: LogFormat, stream: TextIO) -> Processor:
    """Pick the final processor: JSON lines, or console output colored on a TTY."""
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=stream.isatty())
    return structlog.processors.JSONRenderer()


def configure_logging(
    debug: bool = False,
    log_file: str = "",
    log_format: LogFormat = "json",
) -> None:
    """Configure structlog and route stdlib loggers to the same stream.

    Args:
        debug: Enable debug-level logging when True.
        log_file: Append to this file instead of writing to stdout.
        log_format: ``json`` for machine-readable lines, ``console`` for humans.
    """
    level = logging.DEBUG if debug else logging.INFO
    stream = open_log_stream(log_file)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            build_renderer(log_format, stream),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(stream)],
        force=True,
    )

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if debug else logging.WARNING)
