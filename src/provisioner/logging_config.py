"""Logging utilities with Rich integration."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .redaction import RedactingFilter, Redactor

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
    redactor: Optional[Redactor] = None,
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Configure process-wide logging and return a scoped logger.

    Console output goes to stderr through Rich; ``log_file`` adds a plain
    timestamped copy. Every handler masks the secrets known to ``redactor``.
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_time=True, show_path=False),
    ]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(file_handler)

    if redactor is not None:
        for handler in handlers:
            handler.addFilter(RedactingFilter(redactor))

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
    logger = logging.getLogger(logger_name or "provisioner")
    logger.debug("Logging configured with level %s", logging.getLevelName(level))
    return logger


__all__ = ["configure_logging", "LOG_FORMAT", "DATE_FORMAT"]
