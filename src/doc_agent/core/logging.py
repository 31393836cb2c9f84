"""Logging infrastructure for Doc-Agent."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

LOGGER_NAME = "doc-agent"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

DEFAULT_LOG_DIR = Path.home() / ".doc-agent" / "logs"
DEFAULT_LOG_FILE = DEFAULT_LOG_DIR / "doc-agent.log"

MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_level_from_env() -> int:
    """Get logging level from DOC_AGENT_LOG_LEVEL environment variable.

    Returns:
        Logging level constant. Defaults to WARNING if not set or invalid.
    """
    level_str = os.environ.get("DOC_AGENT_LOG_LEVEL", "WARNING").upper()
    return LOG_LEVEL_MAP.get(level_str, logging.WARNING)


def parse_level(level: int | str | None) -> int:
    """Normalize a level given as a name, a number, or None."""
    if level is None:
        return get_log_level_from_env()
    if isinstance(level, str):
        return LOG_LEVEL_MAP.get(level.upper(), logging.WARNING)
    return level


def setup_logging(
    level: int | str | None = None,
    log_file: Path | None = None,
    console_output: bool = True,
    rich_console: bool = True,
    file_logging: bool = True,
) -> logging.Logger:
    """Configure the Doc-Agent logger tree.

    Level resolution order:
    1. Explicit level parameter
    2. DOC_AGENT_LOG_LEVEL environment variable
    3. WARNING

    Args:
        level: Logging level or level name.
        log_file: Custom log file path. Defaults to ~/.doc-agent/logs.
        console_output: Show logs on the console.
        rich_console: Use Rich for console formatting.
        file_logging: Write logs to a rotating file.

    Returns:
        The configured package logger.
    """
    handlers: list[logging.Handler] = []
    resolved = parse_level(level)

    if file_logging:
        if log_file is None:
            log_file = DEFAULT_LOG_FILE
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    if console_output:
        if rich_console:
            console_handler: logging.Handler = RichHandler(
                rich_tracebacks=True,
                show_time=True,
                show_path=False,
                level=resolved,
            )
        else:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            console_handler.setLevel(resolved)
        handlers.append(console_handler)

    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG if file_logging else resolved)
    root_logger.handlers.clear()

    for handler in handlers:
        root_logger.addHandler(handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the Doc-Agent namespace.

    Args:
        name: Logger name (prefixed with 'doc-agent.').

    Returns:
        A Logger instance.
    """
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
