from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import APP_NAME, get_xdg_cache_home

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def get_log_file() -> Path:
    return get_xdg_cache_home() / APP_NAME / f"{APP_NAME}.log"


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """Route the package logger to a file; the terminal belongs to the UI."""

    logger = logging.getLogger(APP_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    target = (log_file or get_log_file()).resolve()
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == target:
            return logger

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    except OSError:
        logger.addHandler(logging.NullHandler())
        return logger
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
