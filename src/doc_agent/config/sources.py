"""Configuration sources: JSON files, YAML files and the environment."""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

import yaml

from doc_agent.core.errors import ConfigError
from doc_agent.core.logging import get_logger

logger = get_logger("config.sources")


class ConfigSource(ABC):
    """A place configuration data can be loaded from."""

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load configuration data.

        Returns:
            Configuration mapping; empty if the source does not exist.

        Raises:
            ConfigError: If the source exists but cannot be parsed.
        """
        ...

    @abstractmethod
    def exists(self) -> bool: ...


class FileSource(ConfigSource):
    """Common behavior of file-based sources."""

    format_name: ClassVar[str] = "file"

    def __init__(self, path: Path) -> None:
        self._path = path

    def __str__(self) -> str:
        return str(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> dict[str, Any]:
        if not self.exists():
            return {}
        try:
            with self._path.open(encoding="utf-8") as f:
                data = self._parse(f.read())
        except OSError as e:
            raise ConfigError(f"Cannot read {self._path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.format_name} root in {self._path} must be a mapping, got {type(data).__name__}")
        return data

    @abstractmethod
    def _parse(self, content: str) -> Any: ...


class JsonFileSource(FileSource):
    format_name = "JSON"

    def _parse(self, content: str) -> Any:
        if not content.strip():
            return None
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {self._path}: {e}") from e


class YamlFileSource(FileSource):
    format_name = "YAML"

    def _parse(self, content: str) -> Any:
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self._path}: {e}") from e


class EnvironmentSource(ConfigSource):
    """Configuration from ``DOC_AGENT_*`` environment variables.

    ``DOC_AGENT_HISTORY__MAX_OPERATIONS=20`` sets ``history.max_operations``.
    A few short aliases are accepted as well, see ALIASES.
    Values stay strings; the models coerce them.
    """

    PREFIX: ClassVar[str] = "DOC_AGENT_"
    SEPARATOR: ClassVar[str] = "__"

    ALIASES: ClassVar[dict[str, tuple[str, str]]] = {
        "DOC_AGENT_LOG_LEVEL": ("logging", "level"),
        "DOC_AGENT_LOG_FILE": ("logging", "file"),
        "DOC_AGENT_STORAGE_DIR": ("history", "storage_dir"),
        "DOC_AGENT_MAX_OPERATIONS": ("history", "max_operations"),
    }

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = dict(environ) if environ is not None else dict(os.environ)

    def __str__(self) -> str:
        return "environment"

    def exists(self) -> bool:
        return True

    def load(self) -> dict[str, Any]:
        config: dict[str, Any] = {}

        for name, value in sorted(self._environ.items()):
            if not name.startswith(self.PREFIX):
                continue
            if name in self.ALIASES:
                path: tuple[str, ...] = self.ALIASES[name]
            elif self.SEPARATOR in name:
                path = tuple(part.lower() for part in name[len(self.PREFIX):].split(self.SEPARATOR))
            else:
                logger.debug(f"Ignoring environment variable {name}")
                continue
            if not all(path):
                logger.debug(f"Ignoring malformed environment variable {name}")
                continue
            _set_nested(config, path, value)

        return config


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    for key in path[:-1]:
        node = target.get(key)
        if not isinstance(node, dict):
            node = target[key] = {}
        target = node
    target[path[-1]] = value
