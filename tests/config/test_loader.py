"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- _deep_merge() function
- _resolve_search_paths() function
- load_config() precedence: kwargs > env > yaml > defaults
- require_run_settings()
"""

from __future__ import annotations

from pathlib import Path

import pytest

from searchbuild.config.loader import (
    _deep_merge,
    _load_yaml,
    _resolve_search_paths,
    load_config,
    require_run_settings,
)
from searchbuild.config.models import SearchBuildConfig, StoreConfig
from searchbuild.core.errors import ConfigError, ErrorCode


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """No stray SEARCHBUILD__ variables or ./searchbuild.yaml leak into tests."""
    import os

    for key in list(os.environ):
        if key.upper().startswith("SEARCHBUILD__"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


def write_config(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = write_config(tmp_path / "c.yaml", "index:\n  index_dir: /idx\n")

        assert _load_yaml(yaml_file) == {"index": {"index_dir": "/idx"}}

    def test_returns_empty_for_empty_file(self, tmp_path: Path) -> None:
        assert _load_yaml(write_config(tmp_path / "empty.yaml", "")) == {}

    def test_raises_config_error_for_invalid_yaml(self, tmp_path: Path) -> None:
        yaml_file = write_config(tmp_path / "bad.yaml", "store:\n  url: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            _load_yaml(yaml_file)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_raises_config_error_for_non_mapping(self, tmp_path: Path) -> None:
        yaml_file = write_config(tmp_path / "list.yaml", "- a\n- b\n")

        with pytest.raises(ConfigError, match="top level must be a mapping"):
            _load_yaml(yaml_file)


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_override_wins(self) -> None:
        assert _deep_merge({"a": 1}, {"a": 2}) == {"a": 2}

    def test_nested_merge_keeps_siblings(self) -> None:
        base = {"store": {"url": "sqlite://", "echo": True}}
        override = {"store": {"url": "postgresql://db/shop"}}

        assert _deep_merge(base, override) == {
            "store": {"url": "postgresql://db/shop", "echo": True}
        }

    def test_does_not_mutate_base(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"c": 2}})

        assert base == {"a": {"b": 1}}


class TestResolveSearchPaths:
    """Relative search paths are anchored at the config file's directory."""

    def test_relative_paths_resolved(self, tmp_path: Path) -> None:
        result = _resolve_search_paths({"mapping": {"search_paths": ["src"]}}, tmp_path)

        assert result["mapping"]["search_paths"] == [str((tmp_path / "src").resolve())]

    def test_absolute_paths_unchanged(self, tmp_path: Path) -> None:
        absolute = str(tmp_path / "lib")

        result = _resolve_search_paths({"mapping": {"search_paths": [absolute]}}, Path("/x"))

        assert result["mapping"]["search_paths"] == [absolute]

    def test_no_mapping_section_is_passthrough(self) -> None:
        assert _resolve_search_paths({"skip": True}, Path("/x")) == {"skip": True}


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_without_file(self) -> None:
        config = load_config()

        assert isinstance(config, SearchBuildConfig)
        assert config.store.url is None
        assert config.index.drop is True
        assert config.index.shards == 1
        assert config.skip is False

    def test_reads_explicit_file(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "job.yaml",
            "store:\n"
            "  url: sqlite:///shop.db\n"
            "  password: s3cret\n"
            "index:\n"
            "  index_dir: /var/idx\n"
            "  drop: false\n"
            "mapping:\n"
            "  modules: [shop.models]\n"
            "  search_paths: [src]\n",
        )

        config = load_config(path)

        assert config.store.url == "sqlite:///shop.db"
        assert config.store.password is not None
        assert config.store.password.get_secret_value() == "s3cret"
        assert config.index.index_dir == "/var/idx"
        assert config.index.drop is False
        assert config.mapping.modules == ["shop.models"]
        assert config.mapping.search_paths == [str((tmp_path / "src").resolve())]

    def test_picks_up_default_file_in_cwd(self, tmp_path: Path) -> None:
        write_config(tmp_path / "searchbuild.yaml", "skip: true\n")

        assert load_config().skip is True

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path / "absent.yaml")
        assert exc_info.value.code == ErrorCode.CONFIG_FILE_NOT_FOUND

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = write_config(tmp_path / "job.yaml", "index:\n  index_dir: /from/yaml\n")
        monkeypatch.setenv("SEARCHBUILD__INDEX__INDEX_DIR", "/from/env")

        assert load_config(path).index.index_dir == "/from/env"

    def test_kwargs_override_env_and_keep_other_fields(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = write_config(
            tmp_path / "job.yaml", "index:\n  index_dir: /from/yaml\n  shards: 2\n"
        )
        monkeypatch.setenv("SEARCHBUILD__INDEX__DROP", "true")

        config = load_config(path, index={"drop": False})

        assert config.index.drop is False
        assert config.index.index_dir == "/from/yaml"
        assert config.index.shards == 2

    def test_invalid_value_raises_config_error(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "job.yaml", "index:\n  shards: 0\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE
        assert "shards" in exc_info.value.details["field"]

    def test_invalid_directory_provider_rejected(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "job.yaml", "index:\n  directory_provider: nfs\n")

        with pytest.raises(ConfigError):
            load_config(path)


class TestRequireRunSettings:
    """Fail-fast check for the fields a run needs."""

    def test_missing_url(self) -> None:
        with pytest.raises(ConfigError, match="store.url"):
            require_run_settings(SearchBuildConfig())

    def test_missing_index_dir(self) -> None:
        config = SearchBuildConfig(store=StoreConfig(url="sqlite://"))

        with pytest.raises(ConfigError, match="index.index_dir"):
            require_run_settings(config)
