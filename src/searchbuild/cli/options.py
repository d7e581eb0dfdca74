"""Options shared by sbuild commands."""

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from searchbuild.config import SearchBuildConfig, load_config
from searchbuild.core.errors import ConfigError

F = TypeVar("F", bound=Callable[..., Any])


def config_options(func: F) -> F:
    """Config file plus the overrides every command accepts."""
    options = [
        click.option(
            "-c",
            "--config",
            "config_path",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="YAML config file (default: ./searchbuild.yaml if present)",
        ),
        click.option("--url", help="Store URL, overrides store.url"),
        click.option(
            "--index-dir",
            type=click.Path(file_okay=False, path_type=Path),
            help="Index base directory, overrides index.index_dir",
        ),
        click.option(
            "--directory-provider",
            type=click.Choice(["filesystem", "ram"]),
            help="Index storage strategy, overrides index.directory_provider",
        ),
        click.option(
            "-m",
            "--module",
            "modules",
            multiple=True,
            help="Module defining mapped models (repeatable), overrides mapping.modules",
        ),
        click.option(
            "--search-path",
            "search_paths",
            multiple=True,
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            help="Extra import root for mapping modules (repeatable)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def collect_overrides(
    *,
    url: str | None = None,
    index_dir: Path | None = None,
    directory_provider: str | None = None,
    modules: tuple[str, ...] = (),
    search_paths: tuple[Path, ...] = (),
    no_drop: bool = False,
    shards: int | None = None,
    skip: bool = False,
) -> dict[str, Any]:
    """Nested load_config() kwargs for the options that were given."""
    store: dict[str, Any] = {}
    index: dict[str, Any] = {}
    mapping: dict[str, Any] = {}
    if url:
        store["url"] = url
    if index_dir is not None:
        index["index_dir"] = str(index_dir)
    if directory_provider:
        index["directory_provider"] = directory_provider
    if no_drop:
        index["drop"] = False
    if shards is not None:
        index["shards"] = shards
    if modules:
        mapping["modules"] = list(modules)
    if search_paths:
        mapping["search_paths"] = [str(p.resolve()) for p in search_paths]

    overrides: dict[str, Any] = {}
    for section, values in (("store", store), ("index", index), ("mapping", mapping)):
        if values:
            overrides[section] = values
    if skip:
        overrides["skip"] = True
    return overrides


def load_cli_config(config_path: Path | None, overrides: dict[str, Any]) -> SearchBuildConfig:
    """load_config() with ConfigError reported as a usage failure."""
    try:
        return load_config(config_path, **overrides)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
