import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

SERVICE_NAME = "booking-settlement"

# keys accepted through ``extra=`` and copied into the JSON line
CONTEXT_FIELDS = (
    "partner_id",
    "customer_id",
    "appointment_id",
    "coupon_id",
    "commission_id",
    "error_code",
)

NOISY_LOGGERS = ("aiosqlite", "asyncpg")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in CONTEXT_FIELDS:
            v = getattr(record, k, None)
            if v is not None:
                payload[k] = v
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def error_extra(error, **ids: Any) -> dict[str, Any]:
    """``extra=`` dict for a failed operation: the error code plus any entity ids."""
    out = {k: v for k, v in ids.items() if v is not None}
    out["error_code"] = getattr(error, "code", type(error).__name__)
    return out


def _level_from_env() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """JSON lines on stdout; LOG_LEVEL picks the root level (bad values mean INFO)."""
    level = _level_from_env()
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)

    # driver chatter only when debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
