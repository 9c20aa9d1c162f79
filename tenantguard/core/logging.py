"""
Logging configuration.

Standard library logging with the request id of the current request
injected into every record, so audit-relevant log lines can be
correlated with the X-Request-ID returned to the caller.

Usage:
    import logging

    logger = logging.getLogger(__name__)
    logger.info("Organization %s soft-deleted", org_id)
"""

import logging
import sys

from tenantguard.middleware.request_context import get_request_context


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [request_id=%(request_id)s] %(message)s"


class RequestContextFilter(logging.Filter):
    """Add request_id and principal attributes to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_request_context()
        record.request_id = ctx.request_id if ctx else "-"
        record.principal = ctx.principal if ctx and ctx.principal else "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the service.

    Replaces existing root handlers with a single stdout handler so the
    function can be called more than once (app factory, tests).

    Args:
        level: Minimum log level name, e.g. "INFO" or "DEBUG"
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # SQL statements are logged by the engine itself when DEBUG is on
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
