"""Process-wide logging setup: console always, a dated file under logs/ unless disabled.

Environment knobs: LOG_LEVEL, LOG_TO_FILE, JOBPILOT_LOG_DIR.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date
from pathlib import Path

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("urllib3", "httpx", "openai", "asyncio", "uvicorn.access")

_ready = False


def _default_log_dir() -> Path:
    return Path(os.environ.get("JOBPILOT_LOG_DIR") or Path(__file__).resolve().parent.parent / "logs")


def _file_logging_enabled() -> bool:
    return os.environ.get("LOG_TO_FILE", "true").strip().lower() in ("1", "true", "yes")


def setup_logging(level: str | None = None) -> None:
    """Attach handlers to the root logger once; later calls only adjust the level."""
    global _ready
    numeric = getattr(logging, (level or os.environ.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric)
    if _ready or root.handlers:
        _ready = True
        return
    _ready = True

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if numeric > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    if not _file_logging_enabled():
        return
    log_dir = _default_log_dir()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / f"jobpilot_{date.today():%Y-%m-%d}.log", encoding="utf-8")
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging disabled: %s", exc)
        return
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    if not _ready:
        setup_logging()
    return logging.getLogger(name)
