"""Tests for CLI main entry point."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from doc_agent import __version__
from doc_agent.cli.main import main
from doc_agent.execution.models import AgentOperation
from doc_agent.storage.backend import JsonFileStore
from doc_agent.storage.operations import OperationStore
from doc_agent.storage.recipes import AgentRecipe, RecipeStore

START_TIME = datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
def cli_env(temp_home: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated home, working directory and log file for CLI runs."""
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("DOC_AGENT_LOG_FILE", str(tmp_path / "logs" / "cli.log"))
    return temp_home


@pytest.fixture
def seeded(cli_env: Path, storage_dir: Path, make_operation: Callable[..., AgentOperation]) -> JsonFileStore:
    backend = JsonFileStore(storage_dir)
    operations = [
        make_operation("op-old", created_at=START_TIME),
        make_operation("op-new", created_at=START_TIME + timedelta(minutes=1), failed=True),
    ]
    backend.save(OperationStore.KEY, [op.to_dict() for op in operations])
    return backend


class TestMainOptions:
    """Tests for global options."""

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--help"]) == 0
        out = capsys.readouterr().out
        assert "Usage: doc-agent" in out
        assert "history" in out

    def test_no_arguments_shows_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "Commands:" in capsys.readouterr().out

    def test_unknown_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["frobnicate"]) == 1
        assert "Unknown command" in capsys.readouterr().err

    def test_invalid_configuration(
        self, cli_env: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("DOC_AGENT_MAX_OPERATIONS", "zero")
        assert main(["history"]) == 1
        assert "Failed to load configuration" in capsys.readouterr().err


class TestHistoryCommands:
    """Tests for history, export and clear."""

    def test_empty_history(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["history"]) == 0
        assert "No operations recorded" in capsys.readouterr().out

    def test_history_newest_first(self, seeded: JsonFileStore, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["history"]) == 0
        out = capsys.readouterr().out
        assert out.index("op-new") < out.index("op-old")
        assert "failed" in out

    def test_export_to_stdout(self, seeded: JsonFileStore, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["export"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["totalOperations"] == 2
        assert [op["id"] for op in report["operations"]] == ["op-old", "op-new"]

    def test_export_to_file(self, seeded: JsonFileStore, tmp_path: Path) -> None:
        target = tmp_path / "out" / "audit.json"
        assert main(["export", "-o", str(target)]) == 0
        assert json.loads(target.read_text())["totalOperations"] == 2

    def test_export_missing_file_name(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["export", "--output"]) == 1
        assert "requires a file name" in capsys.readouterr().out

    def test_clear(self, seeded: JsonFileStore, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["clear"]) == 0
        assert "Cleared 2 operation(s)" in capsys.readouterr().out
        assert seeded.load(OperationStore.KEY) is None

    def test_custom_storage_dir(
        self,
        cli_env: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        make_operation: Callable[..., AgentOperation],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        data_dir = tmp_path / "custom"
        JsonFileStore(data_dir).save(OperationStore.KEY, [make_operation("op-custom").to_dict()])
        monkeypatch.setenv("DOC_AGENT_STORAGE_DIR", str(data_dir))

        assert main(["history"]) == 0
        assert "op-custom" in capsys.readouterr().out


class TestRecipeCommands:
    """Tests for the recipes command."""

    def test_no_recipes(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["recipes"]) == 0
        assert "No recipes saved" in capsys.readouterr().out

    def test_list_and_delete(self, cli_env: Path, storage_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        backend = JsonFileStore(storage_dir)
        recipe = AgentRecipe(id="recipe-1", name="APA", template="unify citations to APA")
        backend.save(RecipeStore.KEY, [recipe.to_dict()])

        assert main(["recipes"]) == 0
        assert recipe.id in capsys.readouterr().out

        assert main(["recipes", "delete", recipe.id]) == 0
        assert backend.load(RecipeStore.KEY) == []

    def test_delete_unknown(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["recipes", "delete", "nope"]) == 1
        assert "Recipe not found" in capsys.readouterr().out


class TestExamples:
    def test_examples(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["examples"]) == 0
        assert "move methodology before literature-review" in capsys.readouterr().out
