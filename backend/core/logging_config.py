"""Logging setup: one JSON object per line (or plain text for local dev)."""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from core.config import settings

# Attributes every LogRecord carries; anything else came in through `extra=`.
_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "taskName"}

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_default)


_configured = False
_lock = threading.Lock()
_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None, stream: Any = None) -> None:
    """Install a single handler on the root logger. Safe to call more than once."""
    global _configured, _handler
    with _lock:
        if _configured:
            return
        _configured = True

    handler = logging.StreamHandler(stream or sys.stderr)
    if (fmt or settings.log_format) == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(level or settings.log_level)
    root.addHandler(handler)
    _handler = handler


def reset_logging() -> None:
    """Remove the handler installed by configure_logging. For tests."""
    global _configured, _handler
    with _lock:
        _configured = False
        if _handler is not None:
            logging.getLogger().removeHandler(_handler)
            _handler = None
