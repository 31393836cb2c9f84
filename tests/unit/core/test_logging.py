"""Tests for logging infrastructure."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from rich.logging import RichHandler

from doc_agent.core.logging import (
    LOGGER_NAME,
    get_log_level_from_env,
    get_logger,
    parse_level,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_file_logging_captures_everything(self, tmp_path: Path) -> None:
        """Package logger is DEBUG so the file handler sees all records."""
        logger = setup_logging(log_file=tmp_path / "agent.log", console_output=False)
        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)

    def test_console_only_uses_level(self) -> None:
        logger = setup_logging(level="ERROR", file_logging=False)
        assert logger.level == logging.ERROR
        assert any(isinstance(h, RichHandler) for h in logger.handlers)

    def test_plain_console_handler(self) -> None:
        logger = setup_logging(level=logging.INFO, file_logging=False, rich_console=False)
        (handler,) = logger.handlers
        assert type(handler) is logging.StreamHandler
        assert handler.level == logging.INFO

    def test_repeated_setup_replaces_handlers(self, tmp_path: Path) -> None:
        setup_logging(log_file=tmp_path / "a.log")
        logger = setup_logging(log_file=tmp_path / "b.log")
        assert len(logger.handlers) == 2

    def test_writes_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "agent.log"
        setup_logging(log_file=log_file, console_output=False)

        get_logger("tests").info("planned 3 steps")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        assert "planned 3 steps" in log_file.read_text()


class TestLevels:
    def test_env_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOC_AGENT_LOG_LEVEL", "debug")
        assert get_log_level_from_env() == logging.DEBUG

    def test_env_level_invalid(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOC_AGENT_LOG_LEVEL", "chatty")
        assert get_log_level_from_env() == logging.WARNING

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("info", logging.INFO), (logging.ERROR, logging.ERROR), ("nonsense", logging.WARNING)],
    )
    def test_parse_level(self, value: int | str, expected: int) -> None:
        assert parse_level(value) == expected


class TestGetLogger:
    def test_namespaced(self) -> None:
        assert get_logger("storage.backend").name == "doc-agent.storage.backend"

    def test_child_of_package_logger(self) -> None:
        assert get_logger("x").parent is logging.getLogger(LOGGER_NAME)
