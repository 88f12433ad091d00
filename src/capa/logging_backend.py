from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime

LOG_FORMATS = ("plain-text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR", "SILENT")


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def resolve_level(level: str | None = None) -> int | None:
    """Map a level name (or ``LOG_LEVEL``) to a logging level.

    ``SILENT`` maps to ``None``. Unknown names fall back to INFO.
    """
    name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    if name == "SILENT":
        return None
    if name == "WARN":
        name = "WARNING"
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric


def setup_logging(*, level: str | None = None, fmt: str = "plain-text") -> None:
    if fmt not in LOG_FORMATS:
        raise ValueError("log format must be 'plain-text' or 'json'")

    numeric = resolve_level(level)
    if numeric is None:
        logging.basicConfig(handlers=[logging.NullHandler()], force=True)
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(_JsonLineFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    logging.basicConfig(level=numeric, handlers=[handler], force=True)
