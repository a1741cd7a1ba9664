from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

LOGGER_NAME = "sovereign_bond_ranker"

# Structured fields carried into the JSON log when set on a record.
RUN_FIELDS = ("config_hash", "report_ccy", "provider")


@dataclass(frozen=True)
class LogPaths:
    console_level: str = "INFO"
    file_path: Path | None = None


class RunContextFilter(logging.Filter):
    """Stamps every record with the hash of the config the run is scoring with."""

    def __init__(self) -> None:
        super().__init__()
        self.config_hash = ""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "config_hash", ""):
            record.config_hash = self.config_hash
        return True


_RUN_CONTEXT = RunContextFilter()


def set_run_context(config_hash: str) -> None:
    _RUN_CONTEXT.config_hash = config_hash[:12]


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in RUN_FIELDS:
            value = getattr(record, name, None)
            if value:
                payload[name] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(log_paths: LogPaths) -> logging.Logger:
    """Console lines for people, JSON lines in the optional log file for the run record."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_paths.console_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_paths.console_level)
    console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    console_handler.addFilter(_RUN_CONTEXT)
    logger.addHandler(console_handler)

    if log_paths.file_path:
        log_paths.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_paths.file_path, encoding="utf-8")
        file_handler.setLevel(log_paths.console_level)
        file_handler.setFormatter(JsonFormatter())
        file_handler.addFilter(_RUN_CONTEXT)
        logger.addHandler(file_handler)

    return logger
