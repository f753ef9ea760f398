from __future__ import annotations

import os
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.manifest.model import Defaults, Dependent, Manifest
from cascade.output.console import ConsoleProtocol
from cascade.services.checker.checker import Checker
from cascade.services.checker.model import CheckResult, Target
from cascade.services.checker.strategies import CheckStrategy
from cascade.services.checker.version import normalize_version, parse_version
from cascade.services.planner.model import Plan, PlanningError, PlanOptions, PlanStats, WorkItem
from cascade.services.planner.templates import branch_name, commit_message

__all__ = ["Planner", "resolve_parallelism", "validate_target"]


def validate_target(target: Target) -> Result[Target, PlanningError]:
    module = target.module.strip()
    if not module:
        return Err(
            PlanningError(
                kind="invalid_target",
                message="target module is required",
                hint="Pass --module <module path>",
            )
        )

    version = normalize_version(target.version)
    if not version:
        return Err(
            PlanningError(
                kind="invalid_target",
                message="target version is required",
                hint="Pass --version vX.Y.Z",
            )
        )
    if parse_version(version) is None:
        return Err(
            PlanningError(
                kind="invalid_target",
                message=f"invalid version: {target.version}",
                hint="Expected a semantic version like v1.2.3",
            )
        )
    return Ok(Target(module=module, version=version))


def resolve_parallelism(
    configured: int,
    candidates: int,
    *,
    cpu_count: Callable[[], int | None] = os.cpu_count,
) -> int:
    """Worker count: configured value, or one per CPU when 0; at least 1."""
    workers = configured if configured > 0 else (cpu_count() or 1)
    return max(1, min(workers, max(candidates, 1)))


class Planner:
    """Turns a manifest and a target into an ordered Plan.

    Checks fan out over a bounded thread pool; results are collected by
    manifest index so the plan never depends on completion order.
    """

    def __init__(
        self,
        *,
        checker: Checker,
        strategy: CheckStrategy,
        console: ConsoleProtocol,
        options: PlanOptions,
        cpu_count: Callable[[], int | None] = os.cpu_count,
    ) -> None:
        self._checker = checker
        self._strategy = strategy
        self._console = console
        self._options = options
        self._cpu_count = cpu_count

    @property
    def options(self) -> PlanOptions:
        return self._options

    def plan(self, manifest: Manifest, target: Target, *, ctx: RunContext) -> Result[Plan, PlanningError]:
        validated = validate_target(target)
        if isinstance(validated, Err):
            return validated
        target = validated.value

        module = manifest.find_module(target.module)
        if module is None:
            known = ", ".join(m.module for m in manifest.modules) or "none"
            return Err(
                PlanningError(
                    kind="module_not_found",
                    message=f"module not declared in manifest: {target.module}",
                    hint=f"Known modules: {known}",
                )
            )
        if module.module != target.module:
            target = Target(module=module.module, version=target.version)

        dependents = [d for d in module.dependents if not d.skip]
        for d in module.dependents:
            if d.skip:
                self._console.debug(f"{d.repo}: skip=true in manifest")

        if ctx.cancelled:
            return Err(PlanningError(kind="cancelled", message=f"planning cancelled: {ctx.reason}"))

        opts = self._options
        workers = resolve_parallelism(opts.parallel, len(dependents), cpu_count=self._cpu_count)

        pruned = self._checker.cache.prune()
        if pruned:
            self._console.debug(f"dropped {pruned} expired check results")

        before = self._checker.cache.stats()
        started = time.perf_counter()
        results: list[CheckResult | None]
        if opts.force_all:
            # Selection ignores freshness; skip the checks entirely.
            results = [None] * len(dependents)
        else:
            results = self._run_checks(
                dependents,
                target,
                default_branch=manifest.defaults.branch,
                workers=workers,
                ctx=ctx,
            )
        duration = time.perf_counter() - started
        after = self._checker.cache.stats()

        # Interrupted checks are not check errors.
        if ctx.cancelled:
            return Err(PlanningError(kind="cancelled", message=f"planning cancelled: {ctx.reason}"))

        items: list[WorkItem] = []
        skipped: list[str] = []
        errors = 0
        for dependent, result in zip(dependents, results):
            if result is not None and result.error is not None:
                # Fail-open: included, but counted apart from clean stale checks.
                errors += 1
                self._console.warning(
                    f"{dependent.repo}: check failed ({result.error.pretty()}); including for safety"
                )
            elif result is not None and result.up_to_date and opts.skip_up_to_date:
                skipped.append(dependent.repo)
                self._console.debug(f"{dependent.repo}: up to date, skipped")
                continue
            items.append(_work_item(dependent, target, manifest.defaults))

        stats = PlanStats(
            total_dependents=len(dependents),
            skipped_up_to_date=len(skipped),
            work_items_created=len(items) - errors,
            check_errors=errors,
            check_duration=0.0 if opts.force_all else duration,
            check_strategy=opts.strategy,
            parallel_checks=workers > 1 and not opts.force_all,
            workers=workers,
            cache_hits=after.hits - before.hits,
            cache_misses=after.misses - before.misses,
            skipped_repos=tuple(skipped),
        )
        return Ok(Plan(target=target, items=tuple(items), stats=stats))

    def _run_checks(
        self,
        dependents: list[Dependent],
        target: Target,
        *,
        default_branch: str,
        workers: int,
        ctx: RunContext,
    ) -> list[CheckResult | None]:
        def check(dependent: Dependent) -> CheckResult:
            return self._checker.check(
                dependent, target, self._strategy, ctx=ctx, ref=default_branch
            )

        if workers <= 1:
            return [check(d) for d in dependents]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cascade-check") as pool:
            futures = [pool.submit(check, d) for d in dependents]
            # Indexed collection keeps manifest order.
            return [f.result() for f in futures]


def _work_item(dependent: Dependent, target: Target, defaults: Defaults) -> WorkItem:
    return WorkItem(
        repo=dependent.repo,
        module=dependent.module,
        source_module=target.module,
        source_version=target.version,
        branch_name=branch_name(target.module, target.version),
        commit_message=commit_message(defaults.commit_template, target.module, target.version),
        clone_url=dependent.resolved_clone_url,
        module_path=dependent.module_path,
        branch=dependent.branch or defaults.branch,
        tests=dependent.tests or defaults.tests,
        extra_commands=dependent.extra_commands or defaults.extra_commands,
        labels=_merge_labels(defaults.labels, dependent.labels),
        pr=dependent.pr.merged_over(defaults.pr),
        notifications=dependent.notifications.merged_over(defaults.notifications),
        env=dict(dependent.env),
        timeout=dependent.timeout,
    )


def _merge_labels(*groups: tuple[str, ...]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for label in group:
            seen.setdefault(label, None)
    return tuple(seen)
