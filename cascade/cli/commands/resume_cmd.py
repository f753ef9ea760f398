from __future__ import annotations

from pathlib import Path

import typer

from cascade.cli.commands._helpers import (
    CACHE_TTL_OPTION,
    CONFIG_OPTION,
    DRY_RUN_OPTION,
    MANIFEST_OPTION,
    MODULE_OPTION,
    PARALLEL_OPTION,
    STATE_DIR_OPTION,
    STRATEGY_OPTION,
    TIMEOUT_OPTION,
    VERSION_OPTION,
    WORKSPACE_OPTION,
    CheckFlags,
    apply_flags,
    build_services,
    cancel_on_interrupt,
    exit_on_error,
    exit_with,
    load_manifest_or_exit,
    target_from_flags,
)
from cascade.cli.context import build_context
from cascade.cli.report import print_run_report, run_exit_code
from cascade.core.context import RunContext
from cascade.core.errors import ErrorCode
from cascade.core.result import Err
from cascade.pipeline import Pipeline
from cascade.services.planner.model import Target
from cascade.services.state import parse_state_id


def resume(
    state_id: str | None = typer.Argument(None, help="Run to resume, as module@version"),
    manifest: Path | None = MANIFEST_OPTION,
    module: str | None = MODULE_OPTION,
    version: str | None = VERSION_OPTION,
    check_strategy: str | None = STRATEGY_OPTION,
    check_parallel: int | None = PARALLEL_OPTION,
    check_timeout: str | None = TIMEOUT_OPTION,
    check_cache_ttl: str | None = CACHE_TTL_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
    state_dir: Path | None = STATE_DIR_OPTION,
    config: Path | None = CONFIG_OPTION,
) -> None:
    """Continue a previous release, retrying items that did not finish."""
    ctx = build_context(config_path=config)
    cfg = apply_flags(
        ctx.config,
        CheckFlags(
            strategy=check_strategy,
            parallel=check_parallel,
            timeout=check_timeout,
            cache_ttl=check_cache_ttl,
            dry_run=dry_run,
            workspace=workspace,
            state_dir=state_dir,
        ),
    )

    if state_id is not None:
        if module or version:
            exit_with("pass either a state id or --module/--version, not both", code=ErrorCode.USER_ERROR)
        parsed = parse_state_id(state_id)
        if parsed is None:
            exit_with(f"invalid state id: {state_id} (expected module@version)", code=ErrorCode.USER_ERROR)
        target = Target(module=parsed[0], version=parsed[1])
    else:
        target = target_from_flags(module, version)

    loaded = load_manifest_or_exit(ctx, manifest)
    services = build_services(ctx, cfg)

    with cancel_on_interrupt(RunContext()) as run_ctx:
        report = Pipeline(services).resume(loaded, target, ctx=run_ctx)

    if isinstance(report, Err):
        exit_on_error(report.error, ctx)

    print_run_report(report.value, ctx.console)
    code = run_exit_code(report.value)
    if code:
        raise typer.Exit(code=code)
