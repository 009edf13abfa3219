"""
Suspended Members - Structured Logging

One JSON object per line in production, plain text in development.
Every record carries the current request id and username; values passed
through `extra=` (a location, reconciliation counts) land under "extra".
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord has; anything else came in through `extra=`
_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "request_id", "username"}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


class JSONFormatter(logging.Formatter):
    def __init__(self, service_name: str = "suspended-members"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", None),
            "username": getattr(record, "username", None),
        }

        extra = {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}
        if extra:
            log_data["extra"] = extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class RequestContextFilter(logging.Filter):
    """Stamps request id and username on every record."""

    def __init__(self):
        super().__init__()
        self._request_id: Optional[str] = None
        self._username: Optional[str] = None

    def set_request_context(
        self,
        request_id: Optional[str] = None,
        username: Optional[str] = None,
    ):
        if request_id is not None:
            self._request_id = request_id
        if username is not None:
            self._username = username

    def clear_request_context(self):
        self._request_id = None
        self._username = None

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = self._request_id
        record.username = self._username
        return True


_request_context_filter: Optional[RequestContextFilter] = None


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "suspended-members"
) -> logging.Logger:
    """Replace the root logger's handlers with one stdout handler."""
    global _request_context_filter

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    _request_context_filter = RequestContextFilter()
    handler.addFilter(_request_context_filter)
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(
    request_id: Optional[str] = None,
    username: Optional[str] = None,
):
    """Set request context for logging."""
    if _request_context_filter:
        _request_context_filter.set_request_context(request_id, username)


def clear_request_context():
    if _request_context_filter:
        _request_context_filter.clear_request_context()
