"""
Logging setup for AUTHGATE.

Every record carries a request_id attribute. The HTTP middleware sets it
for the duration of a request; outside a request it is "-".
"""
import os
import logging
from contextvars import ContextVar

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id."""

    def filter(self, record):
        if not hasattr(record, 'request_id'):
            record.request_id = request_id_var.get()
        return True


def setup_logging(level: str = None, fmt: str = None) -> None:
    """
    Configure the root logger from LOG_LEVEL and LOG_FORMAT.

    Safe to call more than once; the filter is only attached once per handler.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = fmt or os.getenv("LOG_FORMAT", DEFAULT_FORMAT)

    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=fmt)

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
