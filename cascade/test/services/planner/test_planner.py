"""Tests for dependent selection and work item construction."""

from __future__ import annotations

import random

import pytest

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok
from cascade.manifest.model import Command, Defaults, Dependent, Manifest, Module, PRConfig
from cascade.output.console import MockConsole
from cascade.services.checker.cache import CheckCache
from cascade.services.checker.checker import Checker
from cascade.services.checker.model import CheckError, Target
from cascade.services.planner.model import Plan, PlanOptions
from cascade.services.planner.planner import Planner, resolve_parallelism, validate_target
from cascade.test.fakes import MODULE, VERSION, FakeStrategy, make_manifest, target


def _planner(
    strategy: FakeStrategy,
    *,
    console: MockConsole | None = None,
    cpu_count: int = 4,
    **options: object,
) -> Planner:
    return Planner(
        checker=Checker(cache=CheckCache(ttl=60)),
        strategy=strategy,
        console=console or MockConsole(),
        options=PlanOptions(**options),  # type: ignore[arg-type]
        cpu_count=lambda: cpu_count,
    )


def _plan(planner: Planner, manifest: Manifest, tgt: Target | None = None) -> Plan:
    result = planner.plan(manifest, tgt or target(), ctx=RunContext())
    assert isinstance(result, Ok), result
    return result.value


class TestValidateTarget:
    def test_normalizes_version(self) -> None:
        assert validate_target(Target(module=f" {MODULE} ", version="1.2.3")) == Ok(
            Target(module=MODULE, version="v1.2.3")
        )

    @pytest.mark.parametrize(
        ("module", "version", "message"),
        [
            ("", VERSION, "module is required"),
            (MODULE, "", "version is required"),
            (MODULE, "latest", "invalid version"),
        ],
    )
    def test_rejects(self, module: str, version: str, message: str) -> None:
        result = validate_target(Target(module=module, version=version))
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_target"
        assert message in result.error.message


def test_resolve_parallelism() -> None:
    assert resolve_parallelism(8, 20) == 8
    assert resolve_parallelism(8, 3) == 3
    assert resolve_parallelism(0, 20, cpu_count=lambda: 6) == 6
    assert resolve_parallelism(0, 20, cpu_count=lambda: None) == 1
    assert resolve_parallelism(4, 0) == 1


class TestSelection:
    def test_skips_up_to_date_dependents(self) -> None:
        strategy = FakeStrategy({"acme/a": True, "acme/b": False, "acme/c": True})
        plan = _plan(_planner(strategy), make_manifest("acme/a", "acme/b", "acme/c"))

        assert [i.repo for i in plan.items] == ["acme/b"]
        assert plan.stats.skipped_up_to_date == 2
        assert plan.stats.skipped_repos == ("acme/a", "acme/c")

    def test_accounting_identity(self) -> None:
        outcomes: dict[str, bool | CheckError] = {
            f"acme/r{i}": (i % 3 == 0) for i in range(12)
        }
        outcomes["acme/r5"] = CheckError(kind="fetch_failed", message="down")
        plan = _plan(_planner(FakeStrategy(outcomes)), make_manifest(*outcomes))

        stats = plan.stats
        assert stats.total_dependents == 12
        assert stats.check_errors == 1
        assert (
            stats.skipped_up_to_date + stats.work_items_created + stats.check_errors
            == stats.total_dependents
        )
        assert stats.work_items_created + stats.check_errors == len(plan.items)

    def test_error_counted_once(self) -> None:
        strategy = FakeStrategy(
            {
                "acme/a": True,
                "acme/b": False,
                "acme/c": CheckError(kind="fetch_failed", message="down"),
            }
        )
        plan = _plan(_planner(strategy), make_manifest("acme/a", "acme/b", "acme/c"))

        assert [i.repo for i in plan.items] == ["acme/b", "acme/c"]
        assert plan.stats.skipped_up_to_date == 1
        assert plan.stats.work_items_created == 1
        assert plan.stats.check_errors == 1

    def test_check_errors_fail_open(self) -> None:
        console = MockConsole()
        strategy = FakeStrategy({"acme/a": CheckError(kind="timeout", message="slow")})
        plan = _plan(_planner(strategy, console=console), make_manifest("acme/a"))

        assert [i.repo for i in plan.items] == ["acme/a"]
        assert plan.stats.check_errors == 1
        assert any("including for safety" in w for w in console.warnings())

    def test_expired_cache_entries_pruned_before_planning(self) -> None:
        now = [0.0]
        cache = CheckCache(ttl=10, clock=lambda: now[0])
        console = MockConsole()
        planner = Planner(
            checker=Checker(cache=cache),
            strategy=FakeStrategy(),
            console=console,
            options=PlanOptions(parallel=1),
        )

        _plan(planner, make_manifest("acme/a", "acme/b"))
        assert cache.stats().size == 2
        now[0] += 11
        _plan(planner, make_manifest("acme/a"))

        assert cache.stats().size == 1
        assert console.find("dropped 2 expired check results")

    def test_no_skip_keeps_up_to_date(self) -> None:
        strategy = FakeStrategy({"acme/a": True})
        plan = _plan(_planner(strategy, skip_up_to_date=False), make_manifest("acme/a"))

        assert [i.repo for i in plan.items] == ["acme/a"]
        assert plan.stats.skipped_up_to_date == 0
        assert strategy.calls == ["acme/a"]

    def test_force_all_skips_checks(self) -> None:
        strategy = FakeStrategy({"acme/a": True, "acme/b": True})
        plan = _plan(_planner(strategy, force_all=True), make_manifest("acme/a", "acme/b"))

        assert [i.repo for i in plan.items] == ["acme/a", "acme/b"]
        assert strategy.calls == []
        assert plan.stats.check_duration == 0.0
        assert plan.stats.parallel_checks is False

    def test_manifest_skip_excluded_everywhere(self) -> None:
        manifest = Manifest(
            modules=(
                Module(
                    name="lib",
                    module=MODULE,
                    dependents=(
                        Dependent(repo="acme/a", module="github.com/acme/a"),
                        Dependent(repo="acme/b", module="github.com/acme/b", skip=True),
                    ),
                ),
            )
        )
        strategy = FakeStrategy()
        plan = _plan(_planner(strategy, force_all=True), manifest)

        assert [i.repo for i in plan.items] == ["acme/a"]
        assert plan.stats.total_dependents == 1
        assert strategy.calls == []

    def test_empty_dependents(self) -> None:
        plan = _plan(_planner(FakeStrategy()), make_manifest())
        assert plan.items == ()
        assert plan.stats.total_dependents == 0


class TestOrdering:
    def test_plan_order_matches_manifest_despite_completion_order(self) -> None:
        repos = [f"acme/r{i:02d}" for i in range(16)]
        rng = random.Random(7)
        delays = {repo: rng.uniform(0.0, 0.02) for repo in repos}
        strategy = FakeStrategy(delays=delays)

        plan = _plan(_planner(strategy, parallel=8), make_manifest(*repos))

        assert [i.repo for i in plan.items] == repos
        assert sorted(strategy.calls) == repos
        assert plan.stats.parallel_checks is True
        assert plan.stats.workers == 8

    def test_parallel_zero_uses_cpu_count(self) -> None:
        plan = _plan(_planner(FakeStrategy(), cpu_count=3), make_manifest("acme/a", "acme/b", "acme/c", "acme/d"))
        assert plan.stats.workers == 3

    def test_single_worker_is_sequential(self) -> None:
        plan = _plan(_planner(FakeStrategy(), parallel=1), make_manifest("acme/a", "acme/b"))
        assert plan.stats.workers == 1
        assert plan.stats.parallel_checks is False


class TestTargets:
    def test_module_not_found(self) -> None:
        result = _planner(FakeStrategy()).plan(
            make_manifest("acme/a"), Target(module="github.com/acme/other", version=VERSION), ctx=RunContext()
        )
        assert isinstance(result, Err)
        assert result.error.kind == "module_not_found"
        assert MODULE in (result.error.hint or "")

    def test_short_name_is_canonicalized(self) -> None:
        plan = _plan(_planner(FakeStrategy()), make_manifest("acme/a"), Target(module="lib", version="1.2.3"))
        assert plan.target == Target(module=MODULE, version="v1.2.3")
        assert plan.items[0].source_module == MODULE

    def test_cancelled_before_checks(self) -> None:
        ctx = RunContext()
        ctx.cancel("interrupted")
        result = _planner(FakeStrategy()).plan(make_manifest("acme/a"), target(), ctx=ctx)
        assert isinstance(result, Err)
        assert result.error.kind == "cancelled"

    def test_cancelled_during_checks_is_not_a_check_error(self) -> None:
        ctx = RunContext()
        console = MockConsole()
        strategy = _CancellingStrategy(ctx)
        planner = _planner(strategy, console=console, parallel=1)

        result = planner.plan(make_manifest("acme/a", "acme/b", "acme/c"), target(), ctx=ctx)

        assert isinstance(result, Err)
        assert result.error.kind == "cancelled"
        assert "interrupted" in result.error.message
        assert strategy.calls == ["acme/a"]
        assert not console.has_warning()


class _CancellingStrategy(FakeStrategy):
    """Interrupts the run from inside the first check."""

    def __init__(self, run_ctx: RunContext) -> None:
        super().__init__()
        self._run_ctx = run_ctx

    def check(self, dependent: Dependent, target: Target, *, ref: str, ctx: RunContext):
        self._run_ctx.cancel("interrupted")
        return super().check(dependent, target, ref=ref, ctx=ctx)


class TestWorkItems:
    def test_defaults_and_overrides_merge(self) -> None:
        manifest = Manifest(
            defaults=Defaults(
                branch="main",
                tests=(Command(cmd=("go", "test", "./...")),),
                labels=("deps",),
                commit_template="chore: bump {{ module }} to {{ version }}",
                pr=PRConfig(reviewers=("alice",), title="default title"),
            ),
            modules=(
                Module(
                    name="lib",
                    module=MODULE,
                    dependents=(
                        Dependent(
                            repo="acme/api",
                            module="github.com/acme/api",
                            branch="develop",
                            labels=("deps", "api"),
                            pr=PRConfig(title="custom"),
                            env={"GOFLAGS": "-mod=mod"},
                        ),
                    ),
                ),
            ),
        )
        plan = _plan(_planner(FakeStrategy(), force_all=True), manifest)
        item = plan.items[0]

        assert item.branch == "develop"
        assert item.branch_name == "auto/lib-v1.2.3"
        assert item.commit_message == f"chore: bump {MODULE} to {VERSION}"
        assert item.tests == (Command(cmd=("go", "test", "./...")),)
        assert item.labels == ("deps", "api")
        assert item.pr.title == "custom"
        assert item.pr.reviewers == ("alice",)
        assert item.env == {"GOFLAGS": "-mod=mod"}
        assert item.clone_url == "https://github.com/acme/api.git"
