from __future__ import annotations

import os

import typer

from cascade import __version__
from cascade.cli.commands.plan_cmd import plan
from cascade.cli.commands.release_cmd import release
from cascade.cli.commands.resume_cmd import resume
from cascade.cli.context import QUIET_ENV, VERBOSE_ENV


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(plan)
app.command()(release)
app.command()(resume)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide informational output."),
) -> None:
    """Propagate a released Go module version to the repositories that depend on it."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if verbose:
        os.environ[VERBOSE_ENV] = "1"
    if quiet:
        os.environ[QUIET_ENV] = "1"


def main() -> None:
    app()
