# finbot/core/logging.py
# One JSON object per line on stdout

from __future__ import annotations

import json
import logging
import sys

# third-party loggers that are too chatty at INFO
_QUIET = ("aiogram.event", "apscheduler.executors.default", "httpx")


class JsonFormatter(logging.Formatter):
    """level/ts/name/msg, plus exc when the record carries a traceback."""

    def format(self, record: logging.LogRecord) -> str:
        out = {
            "level": record.levelname,
            "ts": self.formatTime(record),
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            out["exc"] = self.formatException(record.exc_info)
        return json.dumps(out, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(JsonFormatter())
    root.addHandler(h)

    for name in _QUIET:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))
