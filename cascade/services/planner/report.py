"""Operator-facing plan statistics and performance advisories."""

from __future__ import annotations

from cascade.output.console import ConsoleProtocol, Style
from cascade.services.planner.model import Plan, PlanStats

__all__ = [
    "CACHE_ADVISORY_MIN_SAMPLES",
    "CACHE_HIT_RATE_THRESHOLD",
    "MIN_RECOMMENDED_PARALLEL",
    "RECOMMENDED_PARALLEL",
    "SLOW_CHECK_SECONDS",
    "performance_warnings",
    "print_plan",
    "print_plan_stats",
]

SLOW_CHECK_SECONDS = 30.0
MIN_RECOMMENDED_PARALLEL = 4
RECOMMENDED_PARALLEL = 8
CACHE_HIT_RATE_THRESHOLD = 0.5
CACHE_ADVISORY_MIN_SAMPLES = 5


def performance_warnings(stats: PlanStats, *, configured_parallel: int) -> list[str]:
    """Advisories for slow checks and a cold cache; empty when all is well."""
    warnings: list[str] = []

    if stats.check_duration > SLOW_CHECK_SECONDS:
        warnings.append(
            f"Dependency checks took {stats.check_duration:.1f}s (>{SLOW_CHECK_SECONDS:.0f}s)"
        )
        if not stats.parallel_checks or configured_parallel < MIN_RECOMMENDED_PARALLEL:
            warnings.append(
                f"Consider increasing parallelism with --check-parallel={RECOMMENDED_PARALLEL}"
            )

    total = stats.cache_hits + stats.cache_misses
    if (
        stats.check_strategy in ("remote", "auto")
        and stats.cache_misses > 0
        and total > CACHE_ADVISORY_MIN_SAMPLES
    ):
        rate = stats.cache_hits / total
        if rate < CACHE_HIT_RATE_THRESHOLD:
            warnings.append(
                f"Low cache hit rate ({rate * 100:.0f}%). Repeated runs may be slower than expected."
            )

    return warnings


def print_plan_stats(stats: PlanStats, console: ConsoleProtocol, *, configured_parallel: int) -> None:
    console.header(f"Dependency Checking ({stats.check_strategy} mode):")
    if stats.check_strategy in ("remote", "auto"):
        total = stats.cache_hits + stats.cache_misses
        console.print(
            f"  Checked {total} repositories ({stats.cache_hits} cached, {stats.cache_misses} fetched)"
        )
    console.print(f"  {stats.skipped_up_to_date} repositories up-to-date, skipped")
    console.print(f"  {stats.work_items_created} require updates")
    if stats.check_errors:
        console.print(f"  {stats.check_errors} check errors (included for safety)", Style.WARNING)
    console.print(f"  Check duration: {stats.check_duration:.1f}s (parallel: {stats.workers})", Style.DIM)

    for message in performance_warnings(stats, configured_parallel=configured_parallel):
        console.warning(message)


def print_plan(plan: Plan, console: ConsoleProtocol, *, configured_parallel: int) -> None:
    console.header(f"Plan for {plan.target}")
    if not plan.items:
        console.success("All dependents are up to date")
    for item in plan.items:
        console.print(f"  {item.repo} -> {item.branch_name} (base {item.branch})")
        for cmd in item.tests:
            console.print(f"      test: {cmd.display()}", Style.DIM)
        for cmd in item.extra_commands:
            console.print(f"      extra: {cmd.display()}", Style.DIM)
    print_plan_stats(plan.stats, console, configured_parallel=configured_parallel)
