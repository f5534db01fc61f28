# portfolio_engine/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import get_actor_id, get_request_id

# ids a service may pass through `extra=`; anything else on the record is dropped
STRUCTURED_KEYS = (
    "landlord_id",
    "property_id",
    "tenancy_id",
    "payment_id",
    "maintenance_request_id",
    "inspection_id",
    "report_id",
    "actor_id",
    "http",
)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    request_id and actor_id come from the request context when the record
    does not carry them, so service code only passes the entity ids it
    touched. Celery and CLI runs have no request context and log without them.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = get_request_id()
        if rid:
            payload["request_id"] = rid

        for k in STRUCTURED_KEYS:
            v = getattr(record, k, None)
            if v is not None:
                payload[k] = v

        if "actor_id" not in payload:
            actor = get_actor_id()
            if actor:
                payload["actor_id"] = actor

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)

    # uvicorn --reload and repeated CLI calls would otherwise stack handlers
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel((os.getenv("SQL_LOG_LEVEL") or "WARNING").upper())
    logging.getLogger("celery").setLevel((os.getenv("CELERY_LOG_LEVEL") or level).upper())
