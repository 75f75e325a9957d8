"""
Logging setup for the operator and the viewer.

Text logs carry the service name; JSON logs emit one object per line for log
collectors.
"""

import json
import logging
import sys
from datetime import datetime, timezone

DEFAULT_LOG_FORMAT = (
    "%(asctime)s - %(levelname)s - [%(service_name)s] - [%(name)s] - %(message)s"
)

DEFAULT_LOG_LEVEL = "INFO"

# Noisy third-party loggers kept at WARNING unless debugging
_QUIET_LOGGERS = ("kubernetes.client.rest", "urllib3", "httpx", "httpcore")

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "service_name",
        "message",
    }
)


class ServiceNameFilter(logging.Filter):
    """Inject the service name into log records."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service_name", "unknown"),
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Extra fields passed via ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def configure_logging(
    service_name: str,
    level: str = DEFAULT_LOG_LEVEL,
    json_format: bool = False,
) -> logging.Handler:
    """Install a stdout handler on the root logger. Returns the handler."""
    root = logging.getLogger()

    for existing in list(root.handlers):
        if getattr(existing, "_openapi_discovery", False):
            root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(DEFAULT_LOG_FORMAT))
    handler.addFilter(ServiceNameFilter(service_name))
    handler._openapi_discovery = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(level.upper())

    if level.upper() != "DEBUG":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return handler
