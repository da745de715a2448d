# gallerist/core/logging.py
# One-time logging setup for the "gallerist" logger tree.
# - console: human format
# - file (optional): rotating at midnight, 14 days kept
# - json (optional): one JSON object per line in the file handler

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from gallerist.core.config import LoggingSettings

LOGGER_NAME = "gallerist"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "name": record.name,
        }
        backend = getattr(record, "backend", None)
        if backend:
            payload["backend"] = backend
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(cfg: LoggingSettings) -> logging.Logger:
    """
    Configure the "gallerist" logger. Safe to call more than once:
    previous handlers are removed first.
    """
    level = getattr(logging, str(cfg.level).upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    logger.addHandler(ch)

    if cfg.dir:
        logs_dir = Path(cfg.dir).expanduser()
        logs_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.TimedRotatingFileHandler(
            logs_dir / "gallerist.log", when="midnight", backupCount=14, encoding="utf-8"
        )
        fh.setLevel(level)
        if cfg.json_lines:
            fh.setFormatter(JsonFormatter())
        else:
            fh.setFormatter(logging.Formatter("%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s"))
        logger.addHandler(fh)

    return logger
