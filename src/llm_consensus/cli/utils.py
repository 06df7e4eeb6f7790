from __future__ import annotations

import json
import logging
from pathlib import Path

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 2
EXIT_INSUFFICIENT_PROVIDERS = 3
EXIT_NO_SUCCESSFUL_PROVIDERS = 4
EXIT_NO_PROVIDERS = 5


class JsonLogFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _configure_logging(as_json: bool, level: int = logging.WARNING) -> None:
    handler = logging.StreamHandler()
    if as_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _load_env_file(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"env file not found: {path}")
    load_dotenv(path, override=False)
    LOGGER.info("loaded environment from %s", path)


__all__ = [
    "EXIT_INPUT_ERROR",
    "EXIT_INSUFFICIENT_PROVIDERS",
    "EXIT_NO_PROVIDERS",
    "EXIT_NO_SUCCESSFUL_PROVIDERS",
    "EXIT_OK",
    "JsonLogFormatter",
]
