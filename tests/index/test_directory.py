"""Tests for IndexDirectoryManager."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from searchbuild.config.models import IndexConfig
from searchbuild.core.errors import DirectoryError, ErrorCode
from searchbuild.index.directory import IndexDirectoryManager, IndexSettings


@pytest.fixture
def manager() -> IndexDirectoryManager:
    return IndexDirectoryManager()


class TestPrepare:
    def test_creates_missing_directory_with_parents(
        self, manager: IndexDirectoryManager, temp_dir: Path
    ) -> None:
        target = temp_dir / "a" / "b" / "idx"

        result = manager.prepare(target, drop_existing=False)

        assert result == target.resolve()
        assert target.is_dir()

    def test_idempotent_without_drop(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        """Preparing twice never fails just because the directory exists."""
        target = temp_dir / "idx"
        manager.prepare(target, drop_existing=False)
        (target / "keep.txt").write_text("still here")

        manager.prepare(target, drop_existing=False)

        assert (target / "keep.txt").read_text() == "still here"

    def test_drop_empties_directory(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        target = temp_dir / "idx"
        (target / "Customer").mkdir(parents=True)
        (target / "Customer" / "meta.json").write_text("{}")
        (target / "stale.lock").write_text("")

        result = manager.prepare(target, drop_existing=True)

        assert result.is_dir()
        assert os.listdir(result) == []

    def test_drop_replaces_plain_file(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        target = temp_dir / "idx"
        target.write_text("not a directory")

        manager.prepare(target, drop_existing=True)

        assert target.is_dir()

    def test_drop_of_missing_directory_just_creates(
        self, manager: IndexDirectoryManager, temp_dir: Path
    ) -> None:
        target = temp_dir / "idx"

        manager.prepare(target, drop_existing=True)

        assert target.is_dir()

    def test_file_in_the_way_without_drop(
        self, manager: IndexDirectoryManager, temp_dir: Path
    ) -> None:
        target = temp_dir / "idx"
        target.write_text("not a directory")

        with pytest.raises(DirectoryError) as exc_info:
            manager.prepare(target, drop_existing=False)
        assert exc_info.value.code == ErrorCode.DIRECTORY_CREATE_FAILED

    def test_removal_failure(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        target = temp_dir / "idx"
        target.mkdir()

        with patch(
            "searchbuild.index.directory.shutil.rmtree", side_effect=PermissionError("denied")
        ):
            with pytest.raises(DirectoryError) as exc_info:
                manager.prepare(target, drop_existing=True)

        assert exc_info.value.code == ErrorCode.DIRECTORY_REMOVAL_FAILED
        assert exc_info.value.details["cause"] == "denied"
        assert isinstance(exc_info.value.__cause__, PermissionError)

    def test_create_failure(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        target = temp_dir / "idx"

        with patch.object(Path, "mkdir", side_effect=OSError("read-only file system")):
            with pytest.raises(DirectoryError) as exc_info:
                manager.prepare(target, drop_existing=False)

        assert exc_info.value.code == ErrorCode.DIRECTORY_CREATE_FAILED


class TestSettingsFor:
    def test_records_resolved_path(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        config = IndexConfig(index_dir=str(temp_dir / "idx"), shards=3)

        settings = manager.settings_for(config)

        assert settings == IndexSettings(
            index_base=(temp_dir / "idx").resolve(),
            directory_provider="filesystem",
            shards=3,
        )

    def test_provider_override(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        config = IndexConfig(index_dir=str(temp_dir / "idx"), directory_provider="ram")

        assert manager.settings_for(config).directory_provider == "ram"

    def test_drop_flag_from_config(self, manager: IndexDirectoryManager, temp_dir: Path) -> None:
        target = temp_dir / "idx"
        target.mkdir()
        (target / "old").write_text("x")

        manager.settings_for(IndexConfig(index_dir=str(target), drop=False))
        assert (target / "old").exists()

        manager.settings_for(IndexConfig(index_dir=str(target), drop=True))
        assert not (target / "old").exists()

    def test_unset_index_dir(self, manager: IndexDirectoryManager) -> None:
        with pytest.raises(DirectoryError):
            manager.settings_for(IndexConfig())

    def test_settings_are_frozen(self, temp_dir: Path) -> None:
        settings = IndexSettings(index_base=temp_dir)

        with pytest.raises(AttributeError):
            settings.shards = 2  # type: ignore[misc]
