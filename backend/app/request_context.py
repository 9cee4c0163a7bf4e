"""
Request context tracking and logging setup.
"""

import logging
from contextvars import ContextVar
from uuid import uuid4

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def get_request_id() -> str | None:
    """Get the current request ID."""
    return _request_id.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID. If None, generates a new one."""
    if request_id is None:
        request_id = str(uuid4())
    _request_id.set(request_id)
    return request_id


class RequestIdFilter(logging.Filter):
    """Stamp every record with the request ID of the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if any(isinstance(f, RequestIdFilter) for f in handler.filters):
            root.setLevel(level)
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)
    root.setLevel(level)
