"""
structlog configuration.

Everything is rendered as one JSON object per line on stdout. Request and
connection identifiers bound with structlog.contextvars are merged into
every entry.
"""

import logging
import sys

import structlog
from structlog.stdlib import LoggerFactory

# Chatty libraries that only log at WARNING and above
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "uvicorn.access",
    "engineio.server",
    "socketio.server",
)


def setup_logging(log_level: str = "INFO") -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_request(
    method: str, path: str, status_code: int, duration_ms: float, user_id: str | None = None
) -> None:
    """One line per REST request; 4xx and 5xx are logged as warnings."""
    fields = {
        "event_type": "http_request",
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }
    if user_id:
        fields["user_id"] = user_id

    logger = get_logger("http")
    if status_code >= 400:
        logger.warning("HTTP request failed", **fields)
    else:
        logger.info("HTTP request completed", **fields)


def log_socket_event(
    event: str,
    sid: str,
    user_id: str | None,
    ok: bool,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """One line per handled client event; failures are logged as warnings."""
    fields = {
        "event_type": "socket_event",
        "socket_event": event,
        "sid": sid,
        "user_id": user_id,
        "duration_ms": duration_ms,
    }
    if error:
        fields["error"] = error

    logger = get_logger("realtime")
    if ok:
        logger.debug("Socket event handled", **fields)
    else:
        logger.warning("Socket event failed", **fields)
