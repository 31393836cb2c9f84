"""Tests for key-value storage backends."""

from __future__ import annotations

import json
import stat
import sys
from pathlib import Path

import pytest

from doc_agent.core.errors import StorageCorruptedError, StorageError
from doc_agent.storage.backend import JsonFileStore, MemoryStore


class TestMemoryStore:
    def test_missing_key(self) -> None:
        assert MemoryStore().load("nothing") is None

    def test_values_are_copied(self) -> None:
        store = MemoryStore()
        value = {"items": [1, 2]}
        store.save("key", value)
        value["items"].append(3)

        loaded = store.load("key")
        loaded["items"].append(4)

        assert store.load("key") == {"items": [1, 2]}

    def test_unserializable_value(self) -> None:
        with pytest.raises(StorageError):
            MemoryStore().save("key", {"when": object()})

    def test_delete(self) -> None:
        store = MemoryStore()
        store.save("key", [1])
        assert store.delete("key") is True
        assert store.delete("key") is False


class TestJsonFileStore:
    """Tests for the file-backed store."""

    def test_default_dir_uses_xdg(self, temp_home: Path) -> None:
        assert JsonFileStore.get_default_dir() == temp_home / ".local" / "share" / "doc-agent"

    def test_save_and_load(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path / "data")
        store.save("operations", [{"id": "op-1"}])

        assert store.load("operations") == [{"id": "op-1"}]
        assert json.loads(store.get_path("operations").read_text()) == [{"id": "op-1"}]

    def test_creates_directory(self, tmp_path: Path) -> None:
        JsonFileStore(tmp_path / "a" / "b")
        assert (tmp_path / "a" / "b").is_dir()

    def test_string_path(self, tmp_path: Path) -> None:
        store = JsonFileStore(str(tmp_path))
        assert store.storage_dir == tmp_path

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_permissions(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path / "data")
        store.save("recipes", [])

        mode = stat.S_IMODE(store.get_path("recipes").stat().st_mode)
        assert mode == 0o600

    def test_backup_written_on_overwrite(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.save("operations", [1])
        store.save("operations", [1, 2])

        assert json.loads(store.get_backup_path("operations").read_text()) == [1]

    def test_corrupted_file_recovers_from_backup(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.save("operations", [1])
        store.save("operations", [1, 2])
        store.get_path("operations").write_text("{not json")

        assert store.load("operations") == [1]

    def test_corrupted_file_without_backup(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.get_path("operations").write_text("{not json")

        with pytest.raises(StorageCorruptedError):
            store.load("operations")

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.save("operations", [])
        store.save("operations", [1])

        assert sorted(p.name for p in tmp_path.iterdir()) == ["operations.backup", "operations.json"]

    def test_delete_removes_backup(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.save("operations", [1])
        store.save("operations", [2])

        assert store.delete("operations") is True
        assert list(tmp_path.iterdir()) == []
        assert store.delete("operations") is False
