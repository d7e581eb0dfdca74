"""SearchBuild CLI - sbuild command."""

import click

from searchbuild.cli.describe import inspect_command
from searchbuild.cli.run import run_command
from searchbuild.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="sbuild")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """SearchBuild - rebuild a full-text search index from a relational store."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(run_command, name="run")
cli.add_command(inspect_command, name="inspect")


if __name__ == "__main__":
    cli()
