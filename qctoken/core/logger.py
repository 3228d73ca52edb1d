from __future__ import annotations

import json
import logging
import sys
from typing import Any

from qctoken.core.config import settings

_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()) | {"message", "asctime"}
# Never emitted verbatim, even when passed through ``extra=``
_SENSITIVE_EXTRAS = frozenset({"app_secret", "secret", "auth_code", "access_token", "refresh_token"})


def mask_secret(value: str | None, visible: int = 6) -> str:
    """Shorten a token for log output, e.g. ``"abcdef..."``."""
    if not value:
        return "<empty>"
    return f"{value[:visible]}..."


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in payload or key in _STANDARD_ATTRS:
                continue
            if key in _SENSITIVE_EXTRAS:
                value = mask_secret(str(value) if value else None)
            payload.setdefault("extra", {})[key] = value
        return json.dumps(payload, default=str)


def init_logging(level: int | None = None) -> None:
    if logging.getLogger().handlers:
        return
    effective_level = level or getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root = logging.getLogger()
    root.setLevel(effective_level)
    root.addHandler(handler)
    # httpx logs every request URL at INFO; keep provider chatter at WARNING
    logging.getLogger("httpx").setLevel(max(effective_level, logging.WARNING))
