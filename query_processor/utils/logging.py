"""Logging configuration with structured logging support."""

import logging
import sys
import json
from typing import Optional, Dict, Any, MutableMapping, Tuple
from datetime import datetime, timezone

from ..config.config import LoggingConfig


class StructuredFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Execution context (query_id, database) from ExecutionLogger
        context = getattr(record, "execution_context", None)
        if context:
            log_data.update(context)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter; execution context is appended when present."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = getattr(record, "execution_context", None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            text = f"{text} [{pairs}]"
        return text


def setup_logging(
    level: str = "INFO",
    structured: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        structured: Use structured JSON logging if True
        log_file: Optional log file path
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = StandardFormatter()

    # Results may be streamed to stdout, so logs go to stderr
    handlers = []
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    # Set level for third-party loggers to WARNING to reduce noise
    logging.getLogger("psycopg2").setLevel(logging.WARNING)


def configure_from(config: LoggingConfig) -> None:
    """Apply the ``logging`` section of the configuration."""
    setup_logging(level=config.level, structured=config.structured, log_file=config.log_file)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class ExecutionLogger(logging.LoggerAdapter):
    """Logger adapter tagging records with the current execution's context."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> Tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["execution_context"] = self.extra
        kwargs["extra"] = extra
        return msg, kwargs


def get_contextual_logger(name: str, context: Dict[str, Any]) -> ExecutionLogger:
    """Get a logger with contextual information.

    Example:
        >>> logger = get_contextual_logger(__name__, {"query_id": "123"})
        >>> logger.info("Query executed")  # Will include query_id in log
    """
    return ExecutionLogger(get_logger(name), context)
