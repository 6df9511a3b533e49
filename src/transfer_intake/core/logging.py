"""
Logging Configuration

Standard library logging with a per-request trace id.

Every request gets a trace id generated once by the HTTP middleware. It is
stored in a context variable, so it follows the request into awaited calls
and into any asyncio task spawned while handling it. A logging filter
stamps it on every record, which lets a user-visible error be matched to
the server log lines of the same request.
"""

import logging
import secrets
import string
import sys
import time
from contextvars import ContextVar

from transfer_intake.core.config import settings

_NO_TRACE = "-"
_ALPHABET = string.ascii_lowercase + string.digits

_trace_id: ContextVar[str] = ContextVar("trace_id", default=_NO_TRACE)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] trace_id=%(trace_id)s %(message)s"


def generate_trace_id() -> str:
    """Return a new trace id: epoch milliseconds plus a random suffix."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(13))
    return f"{int(time.time() * 1000)}-{suffix}"


def get_trace_id() -> str:
    """Trace id of the current request, or "-" outside a request."""
    return _trace_id.get()


def set_trace_id(trace_id: str):
    """Bind a trace id to the current context. Returns the reset token."""
    return _trace_id.set(trace_id)


def reset_trace_id(token) -> None:
    _trace_id.reset(token)


class TraceIdFilter(logging.Filter):
    """Attach the current trace id to each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = get_trace_id()
        return True


def configure_logging(level: str | None = None) -> None:
    """
    Configure the root logger once.

    Safe to call repeatedly; the handler is only installed the first time.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    if any(isinstance(f, TraceIdFilter) for h in root.handlers for f in h.filters):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(TraceIdFilter())
    root.addHandler(handler)
