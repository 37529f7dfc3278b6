from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from dissect.rpm.helpers.logging import TRACE_LEVEL

# -v shows progress, -vv every decoded header and digest, -vvv every index entry
VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG, TRACE_LEVEL]


def stringify_values(
    logger: structlog.types.WrappedLogger,
    name: str,
    event_dict: structlog.types.EventDict,
) -> dict[str, Any]:
    """Render tags, paths and digests with ``str()`` instead of their repr."""
    return {key: value if key == "exc_info" else str(value) for key, value in event_dict.items()}


def traceback_only_when_debugging(
    logger: structlog.types.WrappedLogger,
    name: str,
    event_dict: structlog.types.EventDict,
) -> dict[str, Any]:
    """Replace the traceback of a logged exception by its message, unless ``logger`` is at ``DEBUG`` or lower."""
    exc_info = event_dict.get("exc_info")
    if exc_info and logger.getEffectiveLevel() > logging.DEBUG:
        event_dict.pop("exc_info")
        exc = exc_info if isinstance(exc_info, BaseException) else sys.exc_info()[1]
        event_dict["exc"] = str(exc)
    return event_dict


def log_level(verbosity: int, quiet: bool) -> int:
    if quiet:
        return logging.CRITICAL
    return VERBOSITY_LEVELS[min(verbosity, len(VERBOSITY_LEVELS) - 1)]


def configure_logging(verbosity: int, quiet: bool, as_plain_text: bool = True) -> None:
    """Route the ``dissect`` loggers through structlog and set their level from the command line flags.

    Without ``-v`` only warnings and errors are shown, ``-q`` silences everything but critical messages.
    """
    renderer = (
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty(), pad_event=10)
        if as_plain_text
        else structlog.processors.JSONRenderer(sort_keys=True)
    )

    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            stringify_values,
            traceback_only_when_debugging,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.captureWarnings(True)
    logging.getLogger("dissect").setLevel(log_level(verbosity, quiet))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))
    logging.getLogger().handlers = [handler]
