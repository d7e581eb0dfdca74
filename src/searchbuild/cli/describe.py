"""sbuild inspect command - show what a run would index."""

import json
from pathlib import Path
from typing import Any

import click
from rich.table import Table

from searchbuild.catalog import EntityCatalog
from searchbuild.cli.options import collect_overrides, config_options, load_cli_config
from searchbuild.core.errors import SearchBuildError
from searchbuild.core.progress import get_console
from searchbuild.index.directory import DEFAULT_DIRECTORY_PROVIDER, IndexSettings
from searchbuild.index.writer import IndexWriter, count_documents, text_fields
from searchbuild.pipeline.context import ResourceScope
from searchbuild.store.metadata import load_store_metadata


def describe_types(config: Any) -> list[dict[str, Any]]:
    """Indexable types with their fields, targets and current document counts.

    Reads only: no directory is created and no store connection is opened.
    """
    mapping = config.mapping
    with ResourceScope(mapping.search_paths, mapping.modules) as resources:
        metadata = load_store_metadata(resources.models)
    record_types = EntityCatalog().discover(metadata)

    writer: IndexWriter | None = None
    if config.index.index_dir:
        writer = IndexWriter(
            IndexSettings(
                index_base=Path(config.index.index_dir).expanduser().resolve(),
                directory_provider=config.index.directory_provider or DEFAULT_DIRECTORY_PROVIDER,
                shards=config.index.shards,
            )
        )

    described = []
    for record_type in record_types:
        targets = []
        if writer is not None:
            for target in writer.targets(record_type):
                targets.append(
                    {
                        "shard": target.shard,
                        "location": target.location,
                        "documents": count_documents(target.location),
                    }
                )
        described.append(
            {
                "type": record_type.name,
                "table": record_type.metadata.table,
                "mapped": record_type.metadata.mapped,
                "fields": list(text_fields(record_type)),
                "embedded": list(record_type.search.embedded),
                "targets": targets,
            }
        )
    return described


@click.command()
@config_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def inspect_command(
    config_path: Path | None,
    url: str | None,
    index_dir: Path | None,
    directory_provider: str | None,
    modules: tuple[str, ...],
    search_paths: tuple[Path, ...],
    as_json: bool,
) -> None:
    """List indexable types, their index targets and document counts."""
    overrides = collect_overrides(
        url=url,
        index_dir=index_dir,
        directory_provider=directory_provider,
        modules=modules,
        search_paths=search_paths,
    )
    config = load_cli_config(config_path, overrides)

    try:
        described = describe_types(config)
    except SearchBuildError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps({"types": described}, indent=2))
        return

    if not described:
        click.echo("No @searchable types found in the mapping modules.")
        return

    table = Table(title="Indexable types")
    table.add_column("Type")
    table.add_column("Fields")
    table.add_column("Index target")
    table.add_column("Documents", justify="right")
    for entry in described:
        fields = ", ".join(entry["fields"] + [f"{e} (embedded)" for e in entry["embedded"]])
        if not entry["mapped"]:
            fields = f"{fields} [red](unmapped)[/red]"
        if not entry["targets"]:
            table.add_row(entry["type"], fields, "-", "-")
            continue
        for i, target in enumerate(entry["targets"]):
            table.add_row(
                entry["type"] if i == 0 else "",
                fields if i == 0 else "",
                target["location"],
                str(target["documents"]),
            )
    get_console().print(table)
