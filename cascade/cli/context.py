from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from cascade.core.config import CONFIG_FILENAME, Config, apply_env, load_config
from cascade.core.errors import ErrorCode
from cascade.core.result import Err
from cascade.output.console import ConsoleProtocol, RichConsole

VERBOSE_ENV = "CASCADE_VERBOSE"
QUIET_ENV = "CASCADE_QUIET"


@dataclass(frozen=True, slots=True)
class CLIContext:
    cwd: Path
    config: Config
    config_path: Path | None
    console: ConsoleProtocol


def build_context(*, config_path: Path | None = None) -> CLIContext:
    """Resolve config (file, then ``CASCADE_*`` env) and the console.

    An explicit ``--config`` must exist; the implicit ``cascade.toml`` in
    the working directory is optional.
    """
    cwd = Path.cwd()
    path = config_path.expanduser() if config_path is not None else cwd / CONFIG_FILENAME

    config = Config()
    used: Path | None = None
    if config_path is not None or path.exists():
        loaded = load_config(path)
        if isinstance(loaded, Err):
            typer.echo(f"error: {loaded.error.message}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        config = loaded.value
        used = path

    console = RichConsole(
        verbose=os.environ.get(VERBOSE_ENV) == "1",
        quiet=os.environ.get(QUIET_ENV) == "1",
    )
    return CLIContext(
        cwd=cwd,
        config=apply_env(config, os.environ),
        config_path=used,
        console=console,
    )
