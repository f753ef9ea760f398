"""Shared helpers for CLI commands."""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer

from cascade.core.config import Config, parse_strategy
from cascade.core.context import RunContext
from cascade.core.durations import parse_duration
from cascade.core.errors import ErrorCode
from cascade.core.result import Err
from cascade.manifest import DEFAULT_MANIFEST_NAME, Manifest, load_manifest
from cascade.output.errors import RunError, error_exit_code, print_error
from cascade.pipeline import RunServices
from cascade.services import gh
from cascade.services.broker import Broker, BrokerSettings, GhPullRequestProvider
from cascade.services.checker import CheckCache, Checker, LocalStrategy, RemoteStrategy, select_strategy
from cascade.services.executor import Executor
from cascade.services.planner import Planner, PlanOptions
from cascade.services.planner.model import Target
from cascade.services.state import StateManager

if TYPE_CHECKING:
    from cascade.cli.context import CLIContext

DEFAULT_WORKSPACE_DIR = ".cascade/workspace"


def exit_with(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


def exit_on_error(error: RunError, ctx: CLIContext) -> NoReturn:
    print_error(error, ctx.console)
    raise typer.Exit(code=error_exit_code(error))


@dataclass(frozen=True, slots=True)
class CheckFlags:
    """Raw check/execution flags; None means "not given on the command line"."""

    strategy: str | None = None
    parallel: int | None = None
    timeout: str | None = None
    cache_ttl: str | None = None
    skip_up_to_date: bool | None = None
    force_all: bool = False
    dry_run: bool = False
    workspace: Path | None = None
    state_dir: Path | None = None


def apply_flags(config: Config, flags: CheckFlags) -> Config:
    """Overlay command line flags onto the resolved config (flags win)."""
    checks = config.checks
    if flags.strategy is not None:
        strategy = parse_strategy(flags.strategy)
        if strategy is None:
            exit_with(
                f"invalid --check-strategy: {flags.strategy} (expected local, remote or auto)",
                code=ErrorCode.USER_ERROR,
            )
        checks = replace(checks, strategy=strategy)
    if flags.parallel is not None:
        if flags.parallel < 0:
            exit_with("--check-parallel must be >= 0", code=ErrorCode.USER_ERROR)
        checks = replace(checks, parallel=flags.parallel)
    if flags.timeout is not None:
        checks = replace(checks, timeout=_duration_flag("--check-timeout", flags.timeout))
    if flags.cache_ttl is not None:
        checks = replace(checks, cache_ttl=_duration_flag("--check-cache-ttl", flags.cache_ttl))
    if flags.skip_up_to_date is not None:
        checks = replace(checks, skip_up_to_date=flags.skip_up_to_date)
    if flags.force_all:
        checks = replace(checks, force_all=True)

    executor = config.executor
    if flags.dry_run:
        executor = replace(executor, dry_run=True)
    if flags.workspace is not None:
        executor = replace(executor, workspace=str(flags.workspace))

    state = config.state
    if flags.state_dir is not None:
        state = replace(state, dir=str(flags.state_dir))

    return replace(config, checks=checks, executor=executor, state=state)


def _duration_flag(flag: str, value: str) -> float:
    seconds = parse_duration(value)
    if seconds is None:
        exit_with(f"invalid {flag}: {value} (expected e.g. 30s, 5m, 1h)", code=ErrorCode.USER_ERROR)
    return seconds


def resolve_path(base: Path, value: str | None, default: str) -> Path:
    path = Path(value or default).expanduser()
    return path if path.is_absolute() else base / path


def load_manifest_or_exit(ctx: CLIContext, manifest: Path | None) -> Manifest:
    path = manifest if manifest is not None else ctx.cwd / DEFAULT_MANIFEST_NAME
    loaded = load_manifest(path)
    if isinstance(loaded, Err):
        exit_on_error(loaded.error, ctx)
    return loaded.value


def target_from_flags(module: str | None, version: str | None) -> Target:
    if not module or not version:
        exit_with("both --module and --version are required", code=ErrorCode.USER_ERROR)
    return Target(module=module, version=version)


def build_planner(ctx: CLIContext, config: Config) -> Planner:
    checks = config.checks
    workspace = resolve_path(ctx.cwd, config.executor.workspace, DEFAULT_WORKSPACE_DIR)
    local = LocalStrategy(workspace=workspace, console=ctx.console)
    remote = RemoteStrategy(cwd=ctx.cwd, console=ctx.console)

    if checks.strategy == "remote" and not checks.force_all:
        available = gh.ensure_gh_available()
        if isinstance(available, Err):
            ctx.console.error(available.error.message)
            if available.error.hint:
                ctx.console.print(f"hint: {available.error.hint}")
            raise typer.Exit(code=int(ErrorCode.NETWORK_ERROR))

    return Planner(
        checker=Checker(cache=CheckCache(ttl=checks.cache_ttl), timeout=checks.timeout),
        strategy=select_strategy(checks.strategy, local=local, remote=remote),
        console=ctx.console,
        options=PlanOptions(
            strategy=checks.strategy,
            parallel=checks.parallel,
            skip_up_to_date=checks.skip_up_to_date,
            force_all=checks.force_all,
        ),
    )


def build_services(ctx: CLIContext, config: Config) -> RunServices:
    dry_run = config.executor.dry_run
    if not dry_run:
        available = gh.ensure_gh_available()
        if isinstance(available, Err):
            exit_with(
                f"{available.error.message} (pull requests need the GitHub CLI)",
                code=ErrorCode.NETWORK_ERROR,
            )

    broker = Broker(
        provider=GhPullRequestProvider(cwd=ctx.cwd),
        console=ctx.console,
        settings=BrokerSettings(
            dry_run=dry_run,
            default_labels=config.broker.default_labels,
            title_template=config.broker.title_template,
            body_template=config.broker.body_template,
            notifications=config.notifications,
        ),
    )
    return RunServices(
        planner=build_planner(ctx, config),
        executor=Executor(console=ctx.console),
        broker=broker,
        state=StateManager(root=resolve_path(ctx.cwd, config.state.dir, config.state.dir)),
        console=ctx.console,
        workspace=resolve_path(ctx.cwd, config.executor.workspace, DEFAULT_WORKSPACE_DIR),
        dry_run=dry_run,
        command_timeout=config.executor.command_timeout,
    )


@contextmanager
def cancel_on_interrupt(run_ctx: RunContext) -> Iterator[RunContext]:
    """First Ctrl-C cancels the run context; the second one aborts."""
    previous = signal.getsignal(signal.SIGINT)

    def handler(signum: int, frame: object) -> None:
        del signum, frame
        if run_ctx.cancelled:
            raise KeyboardInterrupt
        run_ctx.cancel("interrupted")
        typer.echo("interrupt: finishing the current step, press Ctrl-C again to abort", err=True)

    signal.signal(signal.SIGINT, handler)
    try:
        yield run_ctx
    finally:
        signal.signal(signal.SIGINT, previous)


# Options shared by plan, release and resume.
MANIFEST_OPTION = typer.Option(None, "--manifest", "-m", help="Manifest path (default: ./.cascade.yaml)")
MODULE_OPTION = typer.Option(None, "--module", help="Go module path that was released")
VERSION_OPTION = typer.Option(None, "--version", help="Released version (e.g. v1.2.3)")
STRATEGY_OPTION = typer.Option(None, "--check-strategy", help="Dependency check strategy (local | remote | auto)")
PARALLEL_OPTION = typer.Option(None, "--check-parallel", help="Concurrent dependency checks (0 = one per CPU)")
TIMEOUT_OPTION = typer.Option(None, "--check-timeout", help="Timeout per dependency check (e.g. 30s)")
CACHE_TTL_OPTION = typer.Option(None, "--check-cache-ttl", help="How long check results stay cached (e.g. 5m)")
SKIP_UP_TO_DATE_OPTION = typer.Option(
    None,
    "--skip-up-to-date/--no-skip-up-to-date",
    help="Leave out dependents that already require the version",
)
FORCE_ALL_OPTION = typer.Option(False, "--force-all", help="Plan every dependent, skipping the checks")
DRY_RUN_OPTION = typer.Option(False, "--dry-run", help="Print actions without modifying anything")
WORKSPACE_OPTION = typer.Option(None, "--workspace", help="Directory for dependent checkouts")
STATE_DIR_OPTION = typer.Option(None, "--state-dir", help="Directory for run state")
CONFIG_OPTION = typer.Option(None, "--config", help="Config file (default: ./cascade.toml)")
