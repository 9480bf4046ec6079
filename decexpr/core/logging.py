"""
Structured logging for expression parsing and evaluation.

The library only creates loggers under the ``decexpr`` namespace. Records
carry their context (the expression source, results, error messages) in an
``extra_data`` dict, which both formatters render. Handlers are installed by
the embedding application, or by calling setup_logging().
"""

import sys
import logging
from typing import Any, Dict, Optional
from datetime import datetime, timezone
import json
from pathlib import Path

from .config import get_settings

LOGGER_NAME = "decexpr"


class StructuredFormatter(logging.Formatter):
    """JSON formatter; context fields become top-level keys"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(getattr(record, "extra_data", {}))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextTextFormatter(logging.Formatter):
    """Text formatter appending the context as ``key=value`` pairs"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "extra_data", None)
        if not context:
            return line
        pairs = " ".join(f"{key}={value!r}" for key, value in context.items())
        return f"{line} [{pairs}]"


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Install handlers on the ``decexpr`` logger.

    Arguments override the LOG_LEVEL, LOG_FORMAT and LOG_FILE settings.
    Calling it again replaces the handlers installed before.

    Returns:
        The configured ``decexpr`` logger
    """
    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.WARNING)

    if (log_format or settings.LOG_FORMAT) == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = ContextTextFormatter()

    handlers: list = [logging.StreamHandler(sys.stderr)]

    log_file = log_file or settings.LOG_FILE
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        logger.addHandler(handler)
    logger.setLevel(log_level)
    return logger


class ContextAdapter(logging.LoggerAdapter):
    """Logger merging permanent context with per-call ``extra_data``"""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra_data = kwargs.pop("extra_data", {})
        kwargs.setdefault("extra", {})["extra_data"] = {**self.extra, **extra_data}
        return msg, kwargs


def get_context_logger(name: str, **context) -> ContextAdapter:
    """Get a logger that attaches ``context`` to every record"""
    return ContextAdapter(logging.getLogger(name), context)
