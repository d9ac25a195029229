# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Logging setup for Ease.

Adds two levels to the standard logging module:
- CONFIG (15): registration and scheduling notices, console only when verbose
- TASK (25): messages written by task code through Ease.log()

The log file gets one line per record: [timestamp] [TAG] message.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import typer

CONFIG = 15
TASK = 25

logging.addLevelName(CONFIG, "CONFIG")
logging.addLevelName(TASK, "TASK")

# Tags that differ from the level name
TAGS = {
    logging.INFO: "LOG",
}

STYLES: Dict[int, Dict[str, Any]] = {
    logging.ERROR: {"fg": typer.colors.BRIGHT_RED, "bold": True},
    logging.CRITICAL: {"fg": typer.colors.BRIGHT_RED, "bold": True},
    logging.WARNING: {"fg": typer.colors.BRIGHT_YELLOW, "bold": True},
    CONFIG: {"fg": typer.colors.BRIGHT_GREEN, "bold": True},
    TASK: {"fg": typer.colors.BRIGHT_CYAN},
}


class TagFormatter(logging.Formatter):
    """Formats records as "[TAG] message", optionally prefixed by a UTC timestamp."""

    def __init__(self, timestamps: bool = False):
        super().__init__()
        self.timestamps = timestamps

    def format(self, record: logging.LogRecord) -> str:
        tag = TAGS.get(record.levelno, record.levelname)
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        line = f"[{tag}] {message}"
        if self.timestamps:
            stamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds")
            line = f"[{stamp}] {line}"
        return line


class TyperHandler(logging.Handler):
    """Writes records to the console with typer colours."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            typer.secho(self.format(record), **STYLES.get(record.levelno, {}))
        except Exception:
            self.handleError(record)


def setup_logging(log_file: Path, verbose: bool = False) -> logging.Logger:
    """
    Route the "ease" logger to the console and an append-only log file.

    Safe to call more than once; handlers from a previous call are replaced.

    Args:
        log_file: Path of the log file (parent directories are created)
        verbose: Show CONFIG records on the console

    Returns:
        The configured "ease" logger
    """
    logger = logging.getLogger("ease")
    for handler in list(logger.handlers):
        if getattr(handler, "_ease_handler", False):
            logger.removeHandler(handler)
            handler.close()

    log_file = Path(log_file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(CONFIG)
    file_handler.setFormatter(TagFormatter(timestamps=True))

    console_handler = TyperHandler()
    console_handler.setLevel(CONFIG if verbose else logging.INFO)
    console_handler.setFormatter(TagFormatter())

    for handler in (file_handler, console_handler):
        handler._ease_handler = True
        logger.addHandler(handler)

    logger.setLevel(CONFIG)
    logger.propagate = False
    return logger
