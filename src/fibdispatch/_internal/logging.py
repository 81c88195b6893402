"""Structured logging setup for fibdispatch."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime

_HANDLER_NAME = "fibdispatch"


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Emits one-line JSON objects with keys: timestamp, level, logger, pid,
    message. The pid distinguishes server and worker lines on a shared
    stderr.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool | None = None,
) -> logging.Logger:
    """Configure and return the root fibdispatch logger.

    Sets up a handler on the ``fibdispatch`` logger namespace. Subsequent
    calls are idempotent: handlers are not duplicated.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: If True, emit structured JSON logs. If False, emit
            human-readable logs. If None, read ``FIBDISPATCH_JSON_LOGS``
            so worker processes inherit the server's choice.

    Returns:
        The configured ``fibdispatch`` root logger.
    """
    if json_format is None:
        json_format = os.environ.get("FIBDISPATCH_JSON_LOGS", "") in ("1", "true", "yes")

    logger = logging.getLogger("fibdispatch")
    logger.setLevel(level)

    # Other handlers (e.g. test log capture) may be attached as well
    own = [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]
    if own:
        for handler in own:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s[%(process)d]: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``fibdispatch`` namespace.

    Args:
        name: Logger name, appended to ``fibdispatch.`` prefix.
            Example: ``get_logger("engine.worker")`` returns
            ``logging.getLogger("fibdispatch.engine.worker")``.

    Returns:
        A configured child logger.
    """
    return logging.getLogger(f"fibdispatch.{name}")
