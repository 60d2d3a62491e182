"""Structured JSON logging for all datapeek components.

Every line is one JSON object: timestamp, level, component (the logger
name) and message. Context passed through `extra=` is copied into the
object when its key is one of EXTRA_FIELDS, e.g.

    logger.info("sampled", extra={"source": url})
"""

import logging
import json
import sys
from datetime import datetime, timezone

EXTRA_FIELDS = ("source", "method", "path", "status", "duration_ms")


class JSONFormatter(logging.Formatter):
    """Emit logs as structured JSON."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        # record values (dates, decimals) are not always JSON-native
        return json.dumps(log_entry, default=str)


def configure_logging(level="info"):
    """Install the JSON handler on the `datapeek` logger tree.

    Safe to call more than once; the handler is only added on the first
    call, later calls just change the level.
    """
    root = logging.getLogger("datapeek")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    root.propagate = False
    return root
