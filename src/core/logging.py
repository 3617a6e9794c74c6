from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict


# Campi extra ammessi nel payload (tutto il resto di `extra=` viene ignorato)
EXTRA_WHITELIST = ("fetch_stats", "collection", "diagnostic", "quota")

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in EXTRA_WHITELIST if hasattr(record, key)}


class JsonFormatter(logging.Formatter):
    """Una riga JSON per record: ts, level, logger, msg + extra whitelisted."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_extras(record))
        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Formato leggibile per uso locale (LIVE_LOG_FORMAT=text)."""

    def __init__(self) -> None:
        super().__init__(_TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " " + json.dumps(extras, ensure_ascii=False, default=str)
        return line


def _level_from_env() -> int:
    name = os.getenv("LIVE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _formatter_from_env() -> logging.Formatter:
    if os.getenv("LIVE_LOG_FORMAT", "json").strip().lower() == "text":
        return TextFormatter()
    return JsonFormatter()


def get_logger(name: str) -> logging.Logger:
    """
    Logger con handler su stdout configurato una sola volta per nome.
    Livello e formato letti dall'ambiente alla prima richiesta.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_formatter_from_env())
        logger.addHandler(handler)
        logger.setLevel(_level_from_env())
        logger.propagate = False
    return logger


__all__ = ["get_logger", "JsonFormatter", "TextFormatter", "EXTRA_WHITELIST"]
