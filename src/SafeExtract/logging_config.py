"""
Structured Logging Utilities

This module centralizes logging setup for the extraction engine. The engine
only ever logs through ``logging.getLogger("SafeExtract")`` with structured
``extra`` fields (``stage``, ``archive``, ``entry``, ...); the helpers here
decide where those records go and whether they are rendered as JSON lines.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from .settings import LoggingConfiguration

LOGGER_NAME = "SafeExtract"

_STRUCTURED_FIELDS = (
    "stage",
    "archive",
    "kind",
    "entry",
    "root",
    "path",
    "target",
    "link_kind",
    "error_code",
    "files",
    "directories",
    "links",
    "skipped",
    "bytes_written",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """Formatter emitting JSON structured logs.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialize a logging record into a JSON line.

        Args:
            record: Log record emitted by the extraction components.

        Returns:
            JSON string with the structured fields that were supplied via ``extra``.
        """
        now = datetime.now(timezone.utc)
        log_obj = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_obj[key] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger or one of its children."""

    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def setup_logging(config: Optional[LoggingConfiguration] = None) -> logging.Logger:
    """Configure handlers for the ``SafeExtract`` logger.

    Handlers installed by a previous call are replaced, so repeated calls
    (for example from tests invoking the CLI several times) do not stack.

    Args:
        config: Logging configuration; defaults to INFO on stderr.

    Returns:
        Configured package logger.

    Examples:
        >>> logger = setup_logging(LoggingConfiguration(level="DEBUG"))
        >>> logger.name
        'SafeExtract'
    """
    config = config or LoggingConfiguration()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_safeextract_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    if config.json_format:
        stream_handler.setFormatter(JSONFormatter())
    else:
        stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._safeextract_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=int(config.max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._safeextract_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = True

    return logger


__all__ = ["LOGGER_NAME", "JSONFormatter", "get_logger", "setup_logging"]
