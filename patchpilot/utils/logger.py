"""
Operator-facing process logs, one JSON object per line on stdout.

Session-visible progress goes through StepReporter; these logs carry the
same session id so both can be joined:

    logger = get_logger(__name__)
    logger.info("Clone finished", extra={
        "session_id": "3f2a9c1e", "step": "cloning", "action": "clone_done", "duration_ms": 812,
    })

Recognised context keys: session_id, step, action, agent_name, duration_ms, extra.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

_CONTEXT_KEYS = ("session_id", "step", "action", "agent_name", "duration_ms", "extra")


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _CONTEXT_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with JSON formatting.

    The level comes from the LOG_LEVEL environment variable (default: INFO).
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level, logging.INFO))
        logger.propagate = False

    return logger
