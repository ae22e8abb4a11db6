"""
Structured JSON logging.

The middleware logs through the standard library with structured context
attached as ``extra={"extra_data": {...}}``. StructuredFormatter renders
those records as one JSON object per line; configure_logging installs it on
the root logger at the level named by ``HoneycombSettings.log_level``.
"""

import json
import logging
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from honeycomb_middleware.config.settings import HoneycombSettings, get_settings


class StructuredFormatter(logging.Formatter):
    """
    Render each log record as a single-line JSON object.

    Keys, in order: ``timestamp`` (when the record was created, UTC),
    ``level``, ``logger``, ``message``, ``thread`` and ``source``. Static
    fields given at construction follow, then the record's ``extra_data``.
    An attached exception becomes an ``error`` object.

    Example:
        handler.setFormatter(StructuredFormatter({"dataset": "web"}))
    """

    def __init__(self, static_fields: Optional[Mapping] = None):
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return created.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
            "source": self._source(record),
        }
        entry.update(self.static_fields)

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry.update(extra_data)

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)

    @staticmethod
    def _source(record: logging.LogRecord) -> Dict[str, Any]:
        source: Dict[str, Any] = {"module": record.module, "line": record.lineno}
        if record.funcName and record.funcName != "<module>":
            source["function"] = record.funcName
        return source


def configure_logging(
    settings: Optional[HoneycombSettings] = None,
    stream: Optional[Any] = None,
) -> logging.Handler:
    """
    Install StructuredFormatter on the root logger.

    Existing root handlers are removed to avoid duplicate output. The
    configured dataset, when set, is stamped on every line.

    Args:
        settings: Settings providing log_level and dataset; defaults to
                 the environment-backed settings
        stream: Output stream, defaults to stdout

    Returns:
        The installed handler

    Raises:
        ConfigurationError: If settings are loaded from an invalid environment
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)
    static_fields = {"dataset": settings.dataset} if settings.dataset else {}

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter(static_fields))
    root_logger.addHandler(handler)

    logging.getLogger(__name__).debug("Structured logging configured", extra={
        "extra_data": {"log_level": settings.log_level}
    })
    return handler
