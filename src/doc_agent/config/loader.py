"""Configuration loader for Doc-Agent.

Load order (later overrides earlier):
1. Defaults (from AgentConfig)
2. User settings (~/.doc-agent/settings.json or .yaml)
3. Project settings (./.doc-agent/settings.json or .yaml)
4. Environment variables (DOC_AGENT_*)
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from doc_agent.core.errors import ConfigError
from doc_agent.core.logging import get_logger

from .models import AgentConfig
from .sources import ConfigSource, EnvironmentSource, JsonFileSource, YamlFileSource

logger = get_logger("config.loader")

CONFIG_DIR_NAME = ".doc-agent"


class ConfigLoader:
    """Hierarchical configuration loader."""

    def __init__(
        self,
        user_dir: Path | None = None,
        project_dir: Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            user_dir: User configuration directory. Defaults to ~/.doc-agent
            project_dir: Project configuration directory. Defaults to ./.doc-agent
            environ: Environment mapping. Defaults to os.environ.
        """
        self._user_dir = user_dir or Path.home() / CONFIG_DIR_NAME
        self._project_dir = project_dir or Path.cwd() / CONFIG_DIR_NAME
        self._environ = environ
        self._config: AgentConfig | None = None

    @property
    def config(self) -> AgentConfig:
        """Current configuration, loaded on first access."""
        if self._config is None:
            self._config = self.load_all()
        return self._config

    @property
    def user_dir(self) -> Path:
        return self._user_dir

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    def sources(self) -> list[ConfigSource]:
        """Sources in precedence order, lowest first."""
        result: list[ConfigSource] = []
        for directory in (self._user_dir, self._project_dir):
            source = self._file_source(directory)
            if source is not None:
                result.append(source)
        result.append(EnvironmentSource(self._environ))
        return result

    @staticmethod
    def _file_source(directory: Path) -> ConfigSource | None:
        json_file = directory / "settings.json"
        if json_file.is_file():
            return JsonFileSource(json_file)
        for name in ("settings.yaml", "settings.yml"):
            yaml_file = directory / name
            if yaml_file.is_file():
                return YamlFileSource(yaml_file)
        return None

    def load_all(self) -> AgentConfig:
        """Load and merge all sources.

        Returns:
            Validated AgentConfig.

        Raises:
            ConfigError: If a source cannot be parsed or the result is invalid.
        """
        config: dict[str, Any] = AgentConfig().model_dump()

        for source in self.sources():
            override = source.load()
            if override:
                logger.debug(f"Loaded config from {source}")
                config = self.merge(config, override)

        try:
            return AgentConfig.model_validate(config)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigError(f"Configuration validation failed: {e}") from e

    def load(self, path: Path) -> dict[str, Any]:
        """Load a single configuration file.

        Raises:
            ConfigError: If the format is unsupported or the file is invalid.
        """
        suffix = path.suffix.lower()
        if suffix == ".json":
            return JsonFileSource(path).load()
        if suffix in (".yaml", ".yml"):
            return YamlFileSource(path).load()
        raise ConfigError(f"Unsupported configuration format: {suffix}")

    def merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge ``override`` into a copy of ``base``."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def reload(self) -> AgentConfig:
        """Reload from all sources, keeping the old config on failure."""
        try:
            self._config = self.load_all()
        except ConfigError as e:
            logger.error(f"Config reload failed, keeping previous configuration: {e}")
            raise
        return self._config
