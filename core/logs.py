from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.settings import LOG_DIR


def ensure_logger(name: str, filename: str, *, log_dir: Optional[Path] = None) -> logging.Logger:
    """Return ``name`` logger writing to a rotating file under the log dir."""

    logger = logging.getLogger(name)
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        target = Path(log_dir or LOG_DIR) / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(target, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def sync_logger() -> logging.Logger:
    return ensure_logger("loandesk.sync", "sync.log")


def notify_logger() -> logging.Logger:
    return ensure_logger("loandesk.notify", "notify.log")


__all__ = ["ensure_logger", "notify_logger", "sync_logger"]
