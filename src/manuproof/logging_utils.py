from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "manuproof"


def set_debug_logging(enabled: bool) -> None:
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if enabled else logging.WARNING)


def configure_logging(debug: bool = False, *, console: Console | None = None) -> logging.Logger:
    """Attach a rich handler on stderr to the package logger (once)."""
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=debug,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    set_debug_logging(debug)
    return logger


__all__ = ["LOGGER_NAME", "configure_logging", "set_debug_logging"]
