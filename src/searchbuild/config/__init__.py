"""Config module exports."""

from searchbuild.config.loader import load_config, require_run_settings
from searchbuild.config.models import (
    IndexConfig,
    LoggingConfig,
    MappingConfig,
    SearchBuildConfig,
    StoreConfig,
)

__all__ = [
    "load_config",
    "require_run_settings",
    "SearchBuildConfig",
    "StoreConfig",
    "IndexConfig",
    "MappingConfig",
    "LoggingConfig",
]
