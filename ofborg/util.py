"""Small helpers shared across the package: result partitioning, file reading and logging setup."""

from __future__ import annotations

import json
import logging
import os
from typing import IO, Iterable, TypeVar

T = TypeVar("T")

_HANDLER_MARK = "_ofborg_handler"


def partition_result(results: Iterable[object]) -> tuple[list[object], list[BaseException]]:
    """Split results into successes and failures; exceptions count as failures."""
    ok: list[object] = []
    err: list[BaseException] = []
    for result in results:
        if isinstance(result, BaseException):
            err.append(result)
        else:
            ok.append(result)
    return ok, err


def file_to_str(f: IO) -> str:
    """Read the rest of a file, replacing invalid UTF-8 sequences."""
    data = f.read()
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "target": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_log() -> logging.Handler:
    """Configure root logging from OFBORG_LOG (level) and OFBORG_LOG_JSON ("1" for JSON)."""
    level_name = os.environ.get("OFBORG_LOG", "info").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    json_output = os.environ.get("OFBORG_LOG_JSON") == "1"

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    setattr(handler, _HANDLER_MARK, True)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger(__name__).info("Logging configured")
    return handler