"""Logging setup shared by the CLI and embedding applications."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from pilestore.config import LoggingSettings

PACKAGE_LOGGER = "pilestore"
_HANDLER_MARKER = "_pilestore_handler"


def configure_logging(
    settings: LoggingSettings,
    *,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach console and optional rotating file handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Logging configuration.
        console: Rich console for log output; defaults to stderr.

    Returns:
        logging.Logger: The configured ``pilestore`` logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    logger.setLevel(settings.level)

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    _install(logger, rich_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        _install(logger, file_handler)

    return logger


def _install(logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_MARKER, True)
    logger.addHandler(handler)


__all__ = ["PACKAGE_LOGGER", "configure_logging"]
