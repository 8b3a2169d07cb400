"""
Logging setup for backup-storage.

Backends emit snake_case structlog events with keyword context. setup_logging()
hands those events to stdlib logging, where python-json-logger renders each one
as a single JSON object (or structlog's console renderer does, in development).
INFO and below go to stdout, WARNING and above to stderr.

A trace ID set per backup/restore run is attached to every event so the storage
calls of one run can be correlated across backends.
"""

import logging
import logging.config
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from pythonjsonlogger.json import JsonFormatter
from structlog.types import EventDict

if TYPE_CHECKING:
    from backup_storage.core.config import Settings


# Isolated per asyncio task and per thread
_trace_id_context: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


def set_trace_id(trace_id: str) -> None:
    """Tag every storage event of the current run with trace_id."""
    _trace_id_context.set(trace_id)


def get_trace_id() -> Optional[str]:
    return _trace_id_context.get()


def clear_trace_id() -> None:
    _trace_id_context.set(None)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service identity and the current trace ID to an event."""
    from backup_storage.core.config import get_settings

    settings = get_settings()
    event_dict.setdefault("service", settings.SERVICE_NAME)
    event_dict.setdefault("version", settings.VERSION)

    trace_id = get_trace_id()
    if trace_id:
        event_dict["trace_id"] = trace_id
    return event_dict


class StorageJsonFormatter(JsonFormatter):
    """One JSON object per record, with level, logger and trace ID filled in.

    structlog events arrive with their context as record extras, so backend
    fields such as key, path or deleted become top level JSON fields.
    """

    def add_fields(self, log_data: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_data, record, message_dict)
        if not log_data.get("timestamp"):
            log_data["timestamp"] = self.formatTime(record)
        log_data["level"] = record.levelname
        log_data["logger"] = record.name

        # records from plain stdlib loggers never went through add_app_context
        trace_id = get_trace_id()
        if trace_id and "trace_id" not in log_data:
            log_data["trace_id"] = trace_id


class MaxLevelFilter(logging.Filter):
    """Pass only records at or below `level`."""

    def __init__(self, level: int = logging.INFO):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.level


def configure_structlog(json_logs: bool = True) -> None:
    processors = [
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
    ]
    if json_logs:
        # context becomes record extras, rendered by StorageJsonFormatter
        processors.append(structlog.stdlib.render_to_log_kwargs)
    else:
        processors += [
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logging_config(level: str = "INFO", json_logs: bool = True) -> Dict[str, Any]:
    """Build the dictConfig routing records to stdout and stderr."""
    if json_logs:
        formatter: Dict[str, Any] = {"()": StorageJsonFormatter}
    else:
        formatter = {"format": "%(message)s"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "filters": {
            "info_and_below": {"()": MaxLevelFilter, "level": logging.INFO},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "filters": ["info_and_below"],
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "level": "WARNING",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {"handlers": ["stdout", "stderr"], "level": level},
    }


def setup_logging(settings: Optional["Settings"] = None) -> None:
    """Configure stdlib logging and structlog from settings.

    Runs once per process, before the first backend is built; get_storage()
    does this for callers using the cached factory.
    """
    from backup_storage.core.config import get_settings

    settings = settings or get_settings()
    json_logs = settings.use_json_logs
    logging.config.dictConfig(get_logging_config(settings.LOG_LEVEL, json_logs))
    configure_structlog(json_logs)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("local_connected", root="/var/lib/backups")
    """
    return structlog.get_logger(name)
