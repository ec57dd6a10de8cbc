"""Logging configuration helpers for the command-line interface."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", console: Console | None = None) -> logging.Logger:
    """
    Route log records through rich and return the package logger.

    Library modules only create loggers; handlers are installed here, once,
    by the application entry point.
    """
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    # The OpenAI SDK logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("quizgrader")
