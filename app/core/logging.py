"""Structured logging for the Dialectic Engine.

Records are rendered as ``key=value`` pairs. Session, stage, model and job
identifiers passed through ``extra`` become top-level fields so one
generation round can be followed across the resolver, the model attempts
and the file manager.
"""

import logging
import sys
from typing import Any

CORRELATION_FIELDS = ("session_id", "stage_slug", "model_id", "job_id")


class StructuredFormatter(logging.Formatter):
    """key=value formatter with correlation fields and exception text."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for key in CORRELATION_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, dict):
            log_data.update(extra_data)

        line = " ".join(f"{k}={v}" for k, v in log_data.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger writing structured lines to stdout; DEBUG in dev, INFO elsewhere
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        try:
            from app.core.config import get_settings

            level = logging.DEBUG if get_settings().DIALECTIC_ENV == "dev" else logging.INFO
        except Exception:
            # Settings not loadable yet (missing env); stay at INFO
            level = logging.INFO
        logger.setLevel(level)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Correlation fields (session_id, stage_slug, model_id, job_id) are lifted
    to the top level; everything else lands in ``extra_data``.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Context fields
    """
    extra: dict[str, Any] = {key: kwargs.pop(key) for key in CORRELATION_FIELDS if key in kwargs}
    extra["extra_data"] = kwargs
    logger.log(level, msg, extra=extra)
