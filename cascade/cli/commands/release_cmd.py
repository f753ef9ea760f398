from __future__ import annotations

from pathlib import Path

import typer

from cascade.cli.commands._helpers import (
    CACHE_TTL_OPTION,
    CONFIG_OPTION,
    DRY_RUN_OPTION,
    FORCE_ALL_OPTION,
    MANIFEST_OPTION,
    MODULE_OPTION,
    PARALLEL_OPTION,
    SKIP_UP_TO_DATE_OPTION,
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
    load_manifest_or_exit,
    target_from_flags,
)
from cascade.cli.context import build_context
from cascade.cli.report import print_run_report, run_exit_code
from cascade.core.context import RunContext
from cascade.core.result import Err
from cascade.pipeline import Pipeline
from cascade.services.planner import print_plan_stats


def release(
    manifest: Path | None = MANIFEST_OPTION,
    module: str | None = MODULE_OPTION,
    version: str | None = VERSION_OPTION,
    check_strategy: str | None = STRATEGY_OPTION,
    check_parallel: int | None = PARALLEL_OPTION,
    check_timeout: str | None = TIMEOUT_OPTION,
    check_cache_ttl: str | None = CACHE_TTL_OPTION,
    skip_up_to_date: bool | None = SKIP_UP_TO_DATE_OPTION,
    force_all: bool = FORCE_ALL_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
    state_dir: Path | None = STATE_DIR_OPTION,
    config: Path | None = CONFIG_OPTION,
) -> None:
    """Update every dependent that needs the new version and open pull requests."""
    ctx = build_context(config_path=config)
    cfg = apply_flags(
        ctx.config,
        CheckFlags(
            strategy=check_strategy,
            parallel=check_parallel,
            timeout=check_timeout,
            cache_ttl=check_cache_ttl,
            skip_up_to_date=skip_up_to_date,
            force_all=force_all,
            dry_run=dry_run,
            workspace=workspace,
            state_dir=state_dir,
        ),
    )
    target = target_from_flags(module, version)
    loaded = load_manifest_or_exit(ctx, manifest)
    services = build_services(ctx, cfg)

    with cancel_on_interrupt(RunContext()) as run_ctx:
        planned = services.planner.plan(loaded, target, ctx=run_ctx)
        if isinstance(planned, Err):
            exit_on_error(planned.error, ctx)
        plan = planned.value

        print_plan_stats(plan.stats, ctx.console, configured_parallel=cfg.checks.parallel)
        if not plan.items:
            ctx.console.success(f"No work items produced for {plan.target}")
            return
        if services.dry_run:
            ctx.console.print(f"DRY RUN: would process {len(plan.items)} work items for {plan.target}")

        report = Pipeline(services).run(plan, ctx=run_ctx)

    if isinstance(report, Err):
        exit_on_error(report.error, ctx)

    print_run_report(report.value, ctx.console)
    code = run_exit_code(report.value)
    if code:
        raise typer.Exit(code=code)
