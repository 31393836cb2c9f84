"""Tests for configuration loader."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from doc_agent.config.loader import ConfigLoader
from doc_agent.config.sources import EnvironmentSource, JsonFileSource, YamlFileSource
from doc_agent.core.errors import ConfigError


@pytest.fixture
def dirs(tmp_path: Path) -> tuple[Path, Path]:
    user_dir = tmp_path / "user"
    project_dir = tmp_path / "project"
    user_dir.mkdir()
    project_dir.mkdir()
    return user_dir, project_dir


class TestConfigLoaderInit:
    """Tests for ConfigLoader initialization."""

    def test_default_directories(self, temp_home: Path) -> None:
        loader = ConfigLoader()
        assert loader.user_dir == temp_home / ".doc-agent"
        assert loader.project_dir == Path.cwd() / ".doc-agent"

    def test_custom_directories(self, dirs: tuple[Path, Path]) -> None:
        user_dir, project_dir = dirs
        loader = ConfigLoader(user_dir=user_dir, project_dir=project_dir)
        assert loader.user_dir == user_dir
        assert loader.project_dir == project_dir


class TestConfigLoaderSources:
    def test_environment_only(self, dirs: tuple[Path, Path]) -> None:
        sources = ConfigLoader(*dirs, environ={}).sources()
        assert len(sources) == 1
        assert isinstance(sources[0], EnvironmentSource)

    def test_json_preferred_over_yaml(self, dirs: tuple[Path, Path]) -> None:
        user_dir, project_dir = dirs
        (user_dir / "settings.json").write_text("{}")
        (user_dir / "settings.yaml").write_text("{}")
        (project_dir / "settings.yml").write_text("{}")

        sources = ConfigLoader(user_dir, project_dir, environ={}).sources()

        assert isinstance(sources[0], JsonFileSource)
        assert isinstance(sources[1], YamlFileSource)


class TestConfigLoaderLoadAll:
    """Tests for ConfigLoader.load_all()."""

    def test_defaults_only(self, dirs: tuple[Path, Path]) -> None:
        config = ConfigLoader(*dirs, environ={}).load_all()
        assert config.history.max_operations == 50
        assert config.logging.level == "WARNING"

    def test_project_overrides_user(self, dirs: tuple[Path, Path]) -> None:
        user_dir, project_dir = dirs
        (user_dir / "settings.json").write_text(
            json.dumps({"history": {"max_operations": 10}, "logging": {"level": "INFO"}})
        )
        (project_dir / "settings.yaml").write_text("history:\n  max_operations: 5\n")

        config = ConfigLoader(user_dir, project_dir, environ={}).load_all()

        assert config.history.max_operations == 5
        assert config.logging.level == "INFO"

    def test_environment_overrides_files(self, dirs: tuple[Path, Path]) -> None:
        user_dir, project_dir = dirs
        (project_dir / "settings.json").write_text('{"history": {"max_operations": 5}}')

        config = ConfigLoader(
            user_dir,
            project_dir,
            environ={"DOC_AGENT_MAX_OPERATIONS": "7", "DOC_AGENT_EXECUTION__STEP_TIMEOUT": "1.5"},
        ).load_all()

        assert config.history.max_operations == 7
        assert config.execution.step_timeout == 1.5

    def test_invalid_file_raises(self, dirs: tuple[Path, Path]) -> None:
        user_dir, project_dir = dirs
        (user_dir / "settings.json").write_text("{oops")

        with pytest.raises(ConfigError):
            ConfigLoader(user_dir, project_dir, environ={}).load_all()

    def test_invalid_value_raises(self, dirs: tuple[Path, Path]) -> None:
        with pytest.raises(ConfigError, match="validation failed"):
            ConfigLoader(*dirs, environ={"DOC_AGENT_MAX_OPERATIONS": "0"}).load_all()

    def test_config_property_is_cached(self, dirs: tuple[Path, Path]) -> None:
        loader = ConfigLoader(*dirs, environ={})
        assert loader.config is loader.config


class TestConfigLoaderHelpers:
    def test_load_single_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yml"
        path.write_text("planning:\n  max_plans: 3\n")
        assert ConfigLoader().load(path) == {"planning": {"max_plans": 3}}

    def test_load_unsupported_format(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Unsupported"):
            ConfigLoader().load(tmp_path / "settings.toml")

    def test_merge_is_deep(self) -> None:
        base = {"history": {"max_operations": 50, "storage_dir": None}, "logging": {"level": "WARNING"}}
        merged = ConfigLoader().merge(base, {"history": {"max_operations": 3}})

        assert merged == {"history": {"max_operations": 3, "storage_dir": None}, "logging": {"level": "WARNING"}}
        assert base["history"]["max_operations"] == 50

    def test_reload_picks_up_changes(self, dirs: tuple[Path, Path]) -> None:
        user_dir, project_dir = dirs
        loader = ConfigLoader(user_dir, project_dir, environ={})
        assert loader.config.planning.max_plans == 100

        (project_dir / "settings.json").write_text('{"planning": {"max_plans": 4}}')

        assert loader.reload().planning.max_plans == 4
        assert loader.config.planning.max_plans == 4
