"""sbuild run command - rebuild the search index."""

import json
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Any

import click

from searchbuild.cli.options import collect_overrides, config_options, load_cli_config
from searchbuild.config import require_run_settings
from searchbuild.core.errors import ConfigError
from searchbuild.core.logging import configure_logging, get_log_file_path
from searchbuild.core.progress import pluralize, status, suppress_console_logs
from searchbuild.pipeline import ConsoleObserver, LoggingObserver, ReindexPipeline, RunOutcome


def outcome_to_dict(outcome: RunOutcome) -> dict[str, Any]:
    """JSON-ready summary of a run."""
    stats = outcome.stats
    return {
        "status": outcome.status,
        "run_id": outcome.run_id,
        "records": stats.records,
        "documents_flushed": stats.documents_flushed,
        "duration_ms": stats.duration_ms,
        "final_state": stats.final_state.value,
        "warnings": outcome.warnings,
        "error": outcome.error.to_dict() if outcome.error is not None else None,
    }


@click.command()
@config_options
@click.option("--no-drop", is_flag=True, help="Keep the existing index directory contents")
@click.option(
    "--shards", type=click.IntRange(min=1), help="Partitions per type, overrides index.shards"
)
@click.option("--skip", is_flag=True, help="Skip search index population")
@click.option("--json", "as_json", is_flag=True, help="Print the run outcome as JSON on stdout")
@click.pass_context
def run_command(
    ctx: click.Context,
    config_path: Path | None,
    url: str | None,
    index_dir: Path | None,
    directory_provider: str | None,
    modules: tuple[str, ...],
    search_paths: tuple[Path, ...],
    no_drop: bool,
    shards: int | None,
    skip: bool,
    as_json: bool,
) -> None:
    """Drop and rebuild the search index from the store.

    Every type tagged with @searchable in the mapping modules is read in
    full and written to the index. Exits 1 if any type fails.
    """
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    overrides = collect_overrides(
        url=url,
        index_dir=index_dir,
        directory_provider=directory_provider,
        modules=modules,
        search_paths=search_paths,
        no_drop=no_drop,
        shards=shards,
        skip=skip,
    )
    config = load_cli_config(config_path, overrides)
    if not config.skip:
        try:
            require_run_settings(config)
        except ConfigError as e:
            raise click.ClickException(str(e)) from e

    logging_config = config.logging
    if verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)

    pipeline = ReindexPipeline(config, observers=[LoggingObserver(), ConsoleObserver()])
    # Rich status lines own the terminal unless debugging
    with nullcontext() if verbose else suppress_console_logs():
        outcome = pipeline.run()

    if as_json:
        click.echo(json.dumps(outcome_to_dict(outcome), indent=2))

    if outcome.status == "failure":
        log_file = get_log_file_path()
        if log_file is not None:
            status(f"Details: {log_file}", style="none")
        sys.exit(1)

    if outcome.status == "success":
        stats = outcome.stats
        status(
            f"Indexed {pluralize(stats.total_records, 'record')} "
            f"across {pluralize(len(stats.records), 'type')} in {stats.duration_ms} ms",
            style="success",
        )
