"""
Structured logging.

Call sites pass context as keyword arguments:

    logger.info("Tour created", tour_id=tour["_id"], name=tour["name"])

Fields end up as top-level keys in the JSON log file and as ``key=value``
pairs on the console.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple

from rich.logging import RichHandler

_RESERVED_KWARGS = {"exc_info", "stack_info", "stacklevel", "extra"}


class StructuredLogger(logging.LoggerAdapter):
    """LoggerAdapter that turns arbitrary keyword arguments into log fields"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _RESERVED_KWARGS}
        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = {**extra.get("fields", {}), **fields}
        kwargs["extra"] = extra
        return msg, kwargs


class JsonFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(getattr(record, "fields", {}) or {})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class KeyValueFormatter(logging.Formatter):
    """Human readable console format: message followed by key=value fields"""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = getattr(record, "fields", {}) or {}
        if fields:
            message += " " + " ".join(f"{k}={v!r}" for k, v in fields.items())
        return message


def setup_logging(
    level: str = "INFO",
    fmt: str = "json",
    file_path: Optional[str] = None,
    max_bytes: int = 10485760,
    backup_count: int = 5,
    rich_console: bool = True,
) -> None:
    """Configure the root ``tourhub`` and ``web`` loggers once per process."""
    handlers = []
    if rich_console and sys.stderr.isatty():
        console = RichHandler(rich_tracebacks=True, show_path=False)
        console.setFormatter(KeyValueFormatter("%(message)s"))
    else:
        console = logging.StreamHandler()
        console.setFormatter(
            JsonFormatter() if fmt == "json" else KeyValueFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    handlers.append(console)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    for name in ("tourhub", "web"):
        base = logging.getLogger(name)
        for handler in list(base.handlers):
            base.removeHandler(handler)
        for handler in handlers:
            base.addHandler(handler)
        base.setLevel(level.upper())
        base.propagate = False


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger for ``name``"""
    return StructuredLogger(logging.getLogger(name), {})
