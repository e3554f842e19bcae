"""
Structured logging for the wall cost service.

A single stdout handler on the root logger.  JSON lines by default so that
rollup logs can be filtered by wall type or request id; LOG_FORMAT=text
switches to the plain console format for local runs.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Iterable

# Attached by call sites through ``extra=``; copied through when present.
CONTEXT_FIELDS = (
    "wall_type",
    "not_found",
    "function",
    "duration_ms",
    "request_id",
    "http_method",
    "http_path",
    "http_status",
)

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "asyncio")


class JSONFormatter(logging.Formatter):
    """One JSON object per record. Korean material names stay readable."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }
        entry.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if hasattr(record, field)
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> logging.Handler:
    """Replace the root handlers with one stdout handler and return it."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
