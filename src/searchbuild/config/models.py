"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config() (CLI overrides)
2. Environment variables (SEARCHBUILD__SECTION__KEY)
3. The job's YAML config file
4. Built-in defaults (this file)

Environment Variable Format:
    SEARCHBUILD__<SECTION>__<KEY>=<VALUE>

Examples:
    SEARCHBUILD__STORE__URL=postgresql://db.internal/shop
    SEARCHBUILD__STORE__PASSWORD=hunter2
    SEARCHBUILD__INDEX__INDEX_DIR=/var/lib/search
    SEARCHBUILD__INDEX__DROP=false
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
DirectoryProvider = Literal["filesystem", "ram"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        SEARCHBUILD__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG includes one line per flushed index target.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class StoreConfig(BaseModel):
    """Relational store connection.

    Env vars:
        SEARCHBUILD__STORE__URL: SQLAlchemy database URL
        SEARCHBUILD__STORE__DRIVER: DBAPI driver name (e.g. psycopg, pymysql)
        SEARCHBUILD__STORE__USERNAME / SEARCHBUILD__STORE__PASSWORD: Credentials
        SEARCHBUILD__STORE__DIALECT: Dialect override (e.g. postgresql)
    """

    model_config = ConfigDict(frozen=True)

    url: str | None = Field(
        default=None,
        description="Database URL, e.g. postgresql://db.internal/shop. Required for a run.",
    )
    driver: str | None = Field(
        default=None,
        description="DBAPI driver. Combined with the dialect as '<dialect>+<driver>'.",
    )
    username: str | None = Field(
        default=None,
        description="Overrides any username embedded in the URL.",
    )
    password: SecretStr | None = Field(
        default=None,
        description="Overrides any password embedded in the URL.",
    )
    dialect: str | None = Field(
        default=None,
        description="Dialect override. Leave unset to use the URL's scheme.",
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement. Very verbose.",
    )


class IndexConfig(BaseModel):
    """Full-text index location and layout.

    Env vars:
        SEARCHBUILD__INDEX__INDEX_DIR: Base directory holding one index per type
        SEARCHBUILD__INDEX__DIRECTORY_PROVIDER: filesystem or ram
        SEARCHBUILD__INDEX__DROP: Remove the directory before indexing
        SEARCHBUILD__INDEX__SHARDS: Physical partitions per type
    """

    model_config = ConfigDict(frozen=True)

    index_dir: str | None = Field(
        default=None,
        description="Base directory of the index. Required for a run.",
    )
    directory_provider: DirectoryProvider | None = Field(
        default=None,
        description="Storage strategy override. Default: filesystem. "
        "'ram' keeps indexes in memory (tests, dry runs).",
    )
    drop: bool = Field(
        default=True,
        description="Drop the index directory before the run. "
        "RISK: false keeps documents of rows deleted since the last run.",
    )
    shards: int = Field(
        default=1,
        description="Default number of physical partitions per type.",
    )

    @field_validator("shards")
    @classmethod
    def validate_shards(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Shards must be >= 1, got {v}")
        return v


class MappingConfig(BaseModel):
    """Where the mapped model classes come from.

    Env vars:
        SEARCHBUILD__MAPPING__MODULES: JSON list of importable module names
        SEARCHBUILD__MAPPING__SEARCH_PATHS: JSON list of extra import roots
    """

    model_config = ConfigDict(frozen=True)

    modules: list[str] = Field(
        default_factory=list,
        description="Modules defining the mapped model classes, e.g. ['shop.models'].",
    )
    search_paths: list[str] = Field(
        default_factory=list,
        description="Extra directories made importable for the duration of the run.",
    )


class SearchBuildConfig(BaseModel):
    """Root configuration for a reindex job.

    All settings can be configured via:
    1. Environment variables: SEARCHBUILD__SECTION__KEY
    2. The YAML config file passed to `sbuild run --config`
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    mapping: MappingConfig = Field(default_factory=MappingConfig)
    skip: bool = Field(
        default=False,
        description="Skip search index population entirely.",
    )
