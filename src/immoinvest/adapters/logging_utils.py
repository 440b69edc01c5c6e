# src/immoinvest/adapters/logging_utils.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from .config import config

ROOT_LOGGER = "immoinvest"


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; fields passed as extra={"context": {...}} are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "env": config.ENV,
            "message": record.getMessage(),
        }
        ctx = getattr(record, "context", None)
        if isinstance(ctx, dict):
            payload.update(ctx)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonLogFormatter())
        root.addHandler(handler)
        root.setLevel(config.LOG_LEVEL.upper())
        root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Logger under the immoinvest hierarchy.

    Module names already start with "immoinvest."; any other name is nested
    under it so every record goes through the one JSON handler.
    """
    _root()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
