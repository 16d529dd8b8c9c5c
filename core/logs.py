from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from core.settings import LOGGING, LogSettings


def get_sync_logger(settings: LogSettings = LOGGING) -> logging.Logger:
    logger = logging.getLogger(settings.logger_name)
    if settings.file_enabled and not any(
        isinstance(h, RotatingFileHandler) for h in logger.handlers
    ):
        try:
            settings.path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                settings.path,
                maxBytes=settings.max_bytes,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Sync log file unavailable (%s): %s", settings.path, exc)
        else:
            formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
    logger.setLevel(settings.level)
    return logger


def get_child_logger(suffix: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGING.logger_name}.{suffix}")


__all__ = ["get_sync_logger", "get_child_logger"]
