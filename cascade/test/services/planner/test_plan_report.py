from __future__ import annotations

from cascade.output.console import MockConsole
from cascade.services.planner.model import Plan, PlanStats, WorkItem
from cascade.services.planner.report import performance_warnings, print_plan, print_plan_stats
from cascade.test.fakes import target


class TestPerformanceWarnings:
    def test_quiet_when_fast_and_cached(self) -> None:
        stats = PlanStats(check_duration=2.0, check_strategy="remote", cache_hits=9, cache_misses=1)
        assert performance_warnings(stats, configured_parallel=8) == []

    def test_slow_checks_suggest_parallelism(self) -> None:
        stats = PlanStats(check_duration=35.0, parallel_checks=False, check_strategy="local")
        assert performance_warnings(stats, configured_parallel=1) == [
            "Dependency checks took 35.0s (>30s)",
            "Consider increasing parallelism with --check-parallel=8",
        ]

    def test_slow_checks_with_enough_parallelism(self) -> None:
        stats = PlanStats(check_duration=35.0, parallel_checks=True, workers=8, check_strategy="local")
        assert performance_warnings(stats, configured_parallel=8) == ["Dependency checks took 35.0s (>30s)"]

    def test_low_cache_hit_rate(self) -> None:
        stats = PlanStats(check_strategy="remote", cache_hits=2, cache_misses=8)
        assert performance_warnings(stats, configured_parallel=8) == [
            "Low cache hit rate (20%). Repeated runs may be slower than expected."
        ]

    def test_local_never_warns_about_cache(self) -> None:
        stats = PlanStats(check_strategy="local", cache_hits=0, cache_misses=20)
        assert performance_warnings(stats, configured_parallel=8) == []

    def test_small_samples_do_not_warn(self) -> None:
        stats = PlanStats(check_strategy="auto", cache_hits=0, cache_misses=5)
        assert performance_warnings(stats, configured_parallel=8) == []


def test_print_plan_stats_remote() -> None:
    console = MockConsole()
    stats = PlanStats(
        total_dependents=10,
        skipped_up_to_date=6,
        work_items_created=4,
        check_errors=1,
        check_duration=1.25,
        check_strategy="remote",
        workers=4,
        cache_hits=7,
        cache_misses=3,
    )

    print_plan_stats(stats, console, configured_parallel=4)

    assert console.messages == [
        "Dependency Checking (remote mode):",
        "  Checked 10 repositories (7 cached, 3 fetched)",
        "  6 repositories up-to-date, skipped",
        "  4 require updates",
        "  1 check errors (included for safety)",
        "  Check duration: 1.2s (parallel: 4)",
    ]
    assert not console.has_warning()


def test_print_plan_lists_items() -> None:
    console = MockConsole()
    item = WorkItem(
        repo="acme/api",
        module="github.com/acme/api",
        source_module="github.com/acme/lib",
        source_version="v1.2.3",
        branch_name="auto/lib-v1.2.3",
        commit_message="Update",
        clone_url="https://github.com/acme/api.git",
    )
    plan = Plan(target=target(), items=(item,), stats=PlanStats(check_strategy="local"))

    print_plan(plan, console, configured_parallel=4)

    assert console.messages[0] == "Plan for github.com/acme/lib@v1.2.3"
    assert "  acme/api -> auto/lib-v1.2.3 (base main)" in console.messages


def test_print_plan_empty() -> None:
    console = MockConsole()
    print_plan(Plan(target=target()), console, configured_parallel=4)
    assert console.find("All dependents are up to date")
