"""
JSON-lines logging for the collector, viewer and scripts.

Structured context goes straight into `extra`:

    log.info("map saved", extra={"map": "ETS2", "written": 42})

and comes out as one line per record:

    {"ts": "2026-01-01T12:00:00.000Z", "severity": "INFO", "logger": "density.spatial_map",
     "msg": "map saved", "map": "ETS2", "written": 42}
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        ts = datetime.fromtimestamp(record.created, timezone.utc)
        payload: Dict[str, Any] = {
            "ts": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "severity": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload.setdefault(key, value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Install a single stdout JSON handler on the root logger.

    The level is `level`, else env LOG_LEVEL, else INFO; unknown names fall
    back to INFO. Later calls are no-ops unless `force=True` (CLIs use it
    once their config file has been read).
    """
    root = logging.getLogger()
    if getattr(root, "_fleetmap_configured", False) and not force:
        return

    lvl = getattr(logging, (level or os.environ.get("LOG_LEVEL") or "INFO").upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(lvl)
    root._fleetmap_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
