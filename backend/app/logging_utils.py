from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import sys

from .config import settings

REQUEST_FIELDS = ("event", "ip", "path", "status", "user_agent", "reason")
# Gate and sweeper fields, grouped under "rate_limit" in the output.
RATE_LIMIT_FIELDS = ("scope", "retry_after", "strikes", "evicted")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in REQUEST_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        rate_limit = {key: getattr(record, key) for key in RATE_LIMIT_FIELDS if getattr(record, key, None) is not None}
        if rate_limit:
            payload["rate_limit"] = rate_limit

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.setLevel(getattr(logging, settings.log_level, logging.INFO))
    root.addHandler(handler)
