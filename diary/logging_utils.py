"""Centralized logging configuration for the Shayari Diary application."""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Iterable


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "shayari_diary.log"


def configure_logging(level: int = logging.INFO, *, handlers: Iterable[logging.Handler] | None = None) -> Logger:
    """Configure the root logger with the application format."""

    logger = logging.getLogger()
    logger.setLevel(level)

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        logger.addHandler(stream_handler)
    else:
        for handler in handlers:
            logger.addHandler(handler)

    return logger


def get_log_file_path(storage_root: Path) -> Path:
    return storage_root / LOG_FILE_NAME


__all__ = ["configure_logging", "get_log_file_path", "DEFAULT_LOG_FORMAT", "LOG_FILE_NAME"]
