"""
Sviesa Logging
==============

One logging setup for the API, the CLI and tests.

Answer turns pass their context through `extra=` (turn_id, stage,
cache_tier, similarity, task, duration). Both formatters surface those
fields:

    console  2026-10-19 09:12:03 INFO  sviesa.orchestrator.pipeline  Cache hit (local, 0.912) [turn=3f2a9c stage=cache_lookup]
    json     {"ts": "...", "level": "INFO", "logger": "...", "msg": "...", "turn_id": "3f2a9c", ...}

Usage:
    from sviesa.orchestrator.logging_config import configure_logging

    configure_logging(get_settings().logging)
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import LoggingConfig

TURN_FIELDS = ("turn_id", "stage", "cache_tier", "similarity", "task", "duration")

# Client libraries that log every HTTP request at INFO
CLIENT_LOGGERS = ("httpx", "httpcore", "hpack", "openai", "anthropic", "postgrest", "supabase", "urllib3")


def turn_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Turn fields present on a record, in declaration order."""
    context = {}
    for key in TURN_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line, non-ASCII kept readable."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **turn_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TurnFormatter(logging.Formatter):
    """Readable lines with the turn context appended in brackets."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-5s %(name)-30s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = turn_context(record)
        if not context:
            return line
        short = {"turn_id": "turn"}
        tail = " ".join(f"{short.get(k, k)}={v}" for k, v in context.items())
        return f"{line} [{tail}]"


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Replace root handlers with stdout (and optionally a rotating file)."""
    formatter = JSONFormatter() if json_output else TurnFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging ready: level={level} json={json_output} file={log_file}")


def configure_logging(config: LoggingConfig) -> None:
    setup_logging(level=config.level, json_output=config.json_logs, log_file=config.log_file)
