"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority, used for CLI overrides)
2. Environment variables (SEARCHBUILD__SECTION__KEY)
3. The job's YAML config file
4. Built-in defaults (lowest priority)

A minimal config file::

    store:
      url: postgresql://db.internal/shop
      username: indexer
    index:
      index_dir: build/search-index
    mapping:
      modules: [shop.models]
      search_paths: [src]

Relative ``mapping.search_paths`` are resolved against the config file's
directory. The loaded config is resolved once and not modified afterwards.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from searchbuild.config.models import (
    IndexConfig,
    LoggingConfig,
    MappingConfig,
    SearchBuildConfig,
    StoreConfig,
)
from searchbuild.core.errors import ConfigError

DEFAULT_CONFIG_NAME = "searchbuild.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _resolve_search_paths(yaml_config: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    mapping = yaml_config.get("mapping")
    if not isinstance(mapping, dict) or not mapping.get("search_paths"):
        return yaml_config
    resolved = [
        str(p if p.is_absolute() else (base_dir / p).resolve())
        for p in (Path(s).expanduser() for s in mapping["search_paths"])
    ]
    return _deep_merge(yaml_config, {"mapping": {"search_paths": resolved}})


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with an instance-based YAML source."""

    class SearchBuildSettings(BaseSettings):
        """Root config. Env vars: SEARCHBUILD__STORE__URL, SEARCHBUILD__INDEX__DROP, etc."""

        model_config = SettingsConfigDict(
            env_prefix="SEARCHBUILD__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        store: StoreConfig = StoreConfig()
        index: IndexConfig = IndexConfig()
        mapping: MappingConfig = MappingConfig()
        skip: bool = False

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return SearchBuildSettings


def load_config(config_path: Path | None = None, **kwargs: Any) -> SearchBuildConfig:
    """Load config: defaults < YAML file < env vars < kwargs.

    Args:
        config_path: YAML config file. When None, ``searchbuild.yaml`` in the
            current directory is used if present.
        **kwargs: Override values (highest precedence), nested per section,
            e.g. ``index={"drop": False}``.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On a missing explicit config file, invalid YAML syntax,
            or validation errors.
    """
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError.file_not_found(str(config_path))
    else:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    yaml_config = _resolve_search_paths(_load_yaml(config_path), config_path.parent.resolve())

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return SearchBuildConfig.model_validate(settings.model_dump())


def require_run_settings(config: SearchBuildConfig) -> None:
    """Fail fast when a field a reindex run cannot do without is unset.

    Raises:
        ConfigError: For the first missing required field.
    """
    if not config.store.url:
        raise ConfigError.missing_required("store.url")
    if not config.index.index_dir:
        raise ConfigError.missing_required("index.index_dir")
