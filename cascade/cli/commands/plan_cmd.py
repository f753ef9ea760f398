from __future__ import annotations

from pathlib import Path

from cascade.cli.commands._helpers import (
    CACHE_TTL_OPTION,
    CONFIG_OPTION,
    FORCE_ALL_OPTION,
    MANIFEST_OPTION,
    MODULE_OPTION,
    PARALLEL_OPTION,
    SKIP_UP_TO_DATE_OPTION,
    STRATEGY_OPTION,
    TIMEOUT_OPTION,
    VERSION_OPTION,
    WORKSPACE_OPTION,
    CheckFlags,
    apply_flags,
    build_planner,
    cancel_on_interrupt,
    exit_on_error,
    load_manifest_or_exit,
    target_from_flags,
)
from cascade.cli.context import build_context
from cascade.core.context import RunContext
from cascade.core.result import Err
from cascade.services.planner import print_plan


def plan(
    manifest: Path | None = MANIFEST_OPTION,
    module: str | None = MODULE_OPTION,
    version: str | None = VERSION_OPTION,
    check_strategy: str | None = STRATEGY_OPTION,
    check_parallel: int | None = PARALLEL_OPTION,
    check_timeout: str | None = TIMEOUT_OPTION,
    check_cache_ttl: str | None = CACHE_TTL_OPTION,
    skip_up_to_date: bool | None = SKIP_UP_TO_DATE_OPTION,
    force_all: bool = FORCE_ALL_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
    config: Path | None = CONFIG_OPTION,
) -> None:
    """Show which dependents would be updated, without changing anything."""
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
            workspace=workspace,
        ),
    )
    target = target_from_flags(module, version)
    loaded = load_manifest_or_exit(ctx, manifest)
    planner = build_planner(ctx, cfg)

    with cancel_on_interrupt(RunContext()) as run_ctx:
        result = planner.plan(loaded, target, ctx=run_ctx)
    if isinstance(result, Err):
        exit_on_error(result.error, ctx)

    print_plan(result.value, ctx.console, configured_parallel=cfg.checks.parallel)
