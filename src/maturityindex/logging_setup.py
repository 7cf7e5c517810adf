"""Logging configuration and namespaced logger helper."""

from __future__ import annotations

import logging
import sys

from .config import Settings, get_settings

ROOT_LOGGER = "maturityindex"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings | None = None) -> None:
    """Attach handlers to the package logger once.

    Calling this again is a no-op, so tests and the CLI can both call it.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        return
    if settings is None:
        settings = get_settings()

    level = getattr(logging, settings.log_level.upper(), logging.WARNING)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``maturityindex`` namespace."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
