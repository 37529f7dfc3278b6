from __future__ import annotations

import logging
import sys
from typing import Any

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

# Up to 3.10 the trace wrapper itself is counted as a frame
_STACK_LEVEL = 2 if sys.version_info >= (3, 11) else 3


class TraceLogger(logging.Logger):
    """A logger with a ``TRACE`` level below ``DEBUG``, used for per entry header details."""

    def trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(TRACE_LEVEL):
            kwargs.setdefault("stacklevel", _STACK_LEVEL)
            self._log(TRACE_LEVEL, msg, args, **kwargs)


logging.setLoggerClass(TraceLogger)


def get_logger(name: str | None = None) -> TraceLogger:
    return logging.getLogger(name)


class PackageLogAdapter(logging.LoggerAdapter):
    """Tag log records with the package they concern.

    The package name is prefixed to the message, e.g. ``bash-5.2.26-3: Signed package``, and is also available as
    the ``package`` attribute of the record.
    """

    def process(self, msg: Any, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return f"{self.extra['package']}: {msg}", kwargs

    def trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(TRACE_LEVEL):
            msg, kwargs = self.process(msg, kwargs)
            kwargs.setdefault("stacklevel", _STACK_LEVEL)
            self.logger._log(TRACE_LEVEL, msg, args, **kwargs)
