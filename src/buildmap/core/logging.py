"""
Logging setup for the build map pipeline.

Provides a human-readable formatter for interactive runs and a JSON line
formatter for scheduled runs. Both carry the ``platform`` and ``run_id``
context fields when they are passed through ``extra``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


CONTEXT_FIELDS = ("run_id", "platform")


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON-structured log lines.

    Each log line includes the standard fields (timestamp, level, logger,
    message), any context fields present on the record, and the formatted
    exception when one is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter for console output.

    Format: TIMESTAMP [LEVEL] LOGGER - MESSAGE [platform=X run_id=Y]
    """

    def __init__(self):
        super().__init__(
            "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)

        context_parts = []
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                context_parts.append(f"{name}={value}")

        if context_parts:
            return f"{base} [{' '.join(context_parts)}]"
        return base


def setup_logging(verbose: bool = False, structured: bool = False, stream: Optional[object] = None) -> None:
    """
    Configure root logging for a CLI run.

    Args:
        verbose: Log at DEBUG instead of INFO
        structured: Emit JSON lines instead of human-readable text
        stream: Output stream (defaults to stderr)
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter() if structured else HumanReadableFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
