from __future__ import annotations

from pathlib import Path

import pytest

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok
from cascade.manifest.model import Dependent
from cascade.output.console import MockConsole
from cascade.services import gh
from cascade.services.checker import strategies as strategies_mod
from cascade.services.checker.gomod import parse_go_mod
from cascade.services.checker.model import CheckError
from cascade.services.checker.strategies import (
    FallbackStrategy,
    LocalStrategy,
    RemoteStrategy,
    evaluate_go_mod,
    locate_checkout,
    select_strategy,
)
from cascade.test.fakes import MODULE, FakeStrategy, target, write_go_mod

DEPENDENT = Dependent(repo="acme/api", module="github.com/acme/api")


class TestEvaluateGoMod:
    def test_older_requirement_needs_update(self) -> None:
        go_mod = parse_go_mod(f"module x\nrequire {MODULE} v1.2.0\n")
        assert evaluate_go_mod(go_mod, DEPENDENT, target(), console=MockConsole()) == Ok(False)

    def test_same_or_newer_is_up_to_date(self) -> None:
        for declared in ("v1.2.3", "v1.3.0"):
            go_mod = parse_go_mod(f"module x\nrequire {MODULE} {declared}\n")
            assert evaluate_go_mod(go_mod, DEPENDENT, target(), console=MockConsole()) == Ok(True)

    def test_target_without_v_prefix(self) -> None:
        go_mod = parse_go_mod(f"module x\nrequire {MODULE} v1.2.3\n")
        assert evaluate_go_mod(go_mod, DEPENDENT, target("1.2.3"), console=MockConsole()) == Ok(True)

    def test_missing_requirement_warns_and_skips(self) -> None:
        console = MockConsole()
        result = evaluate_go_mod(parse_go_mod("module x\n"), DEPENDENT, target(), console=console)
        assert result == Ok(True)
        assert console.has_warning()

    def test_local_replace_always_needs_update(self) -> None:
        go_mod = parse_go_mod(f"module x\nrequire {MODULE} v9.0.0\nreplace {MODULE} => ../lib\n")
        assert evaluate_go_mod(go_mod, DEPENDENT, target(), console=MockConsole()) == Ok(False)

    def test_versioned_replace_wins_over_require(self) -> None:
        go_mod = parse_go_mod(
            f"module x\nrequire {MODULE} v1.0.0\nreplace {MODULE} => github.com/fork/lib v1.2.3\n"
        )
        assert evaluate_go_mod(go_mod, DEPENDENT, target(), console=MockConsole()) == Ok(True)

    def test_unparseable_version(self) -> None:
        go_mod = parse_go_mod(f"module x\nrequire {MODULE} master\n")
        result = evaluate_go_mod(go_mod, DEPENDENT, target(), console=MockConsole())
        assert isinstance(result, Err)
        assert result.error.kind == "parse_failed"


class TestLocateCheckout:
    @pytest.mark.parametrize("layout", ["api", "acme/api", "github.com/acme/api"])
    def test_layouts(self, tmp_path: Path, layout: str) -> None:
        (tmp_path / layout).mkdir(parents=True)
        assert locate_checkout(tmp_path, DEPENDENT) == tmp_path / layout

    def test_host_from_ssh_clone_url(self, tmp_path: Path) -> None:
        dependent = Dependent(
            repo="acme/api",
            module="git.example.com/acme/api",
            clone_url="git@git.example.com:acme/api.git",
        )
        (tmp_path / "git.example.com" / "acme" / "api").mkdir(parents=True)
        assert locate_checkout(tmp_path, dependent) == tmp_path / "git.example.com" / "acme" / "api"

    def test_missing(self, tmp_path: Path) -> None:
        assert locate_checkout(tmp_path, DEPENDENT) is None


class TestLocalStrategy:
    def test_reads_go_mod_from_checkout(self, tmp_path: Path) -> None:
        write_go_mod(tmp_path / "api", module="github.com/acme/api", requires={MODULE: "v1.2.3"})
        strategy = LocalStrategy(workspace=tmp_path, console=MockConsole())

        assert strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext()) == Ok(True)

    def test_honours_module_path(self, tmp_path: Path) -> None:
        dependent = Dependent(repo="acme/api", module="github.com/acme/api/svc", module_path="svc")
        write_go_mod(tmp_path / "api" / "svc", module=dependent.module, requires={MODULE: "v1.0.0"})
        strategy = LocalStrategy(workspace=tmp_path, console=MockConsole())

        assert strategy.check(dependent, target(), ref="main", ctx=RunContext()) == Ok(False)

    def test_no_checkout_needs_update(self, tmp_path: Path) -> None:
        strategy = LocalStrategy(workspace=tmp_path, console=MockConsole())
        assert strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext()) == Ok(False)

    def test_checkout_without_go_mod(self, tmp_path: Path) -> None:
        (tmp_path / "api").mkdir()
        strategy = LocalStrategy(workspace=tmp_path, console=MockConsole())

        result = strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext())
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"

    def test_cancelled(self, tmp_path: Path) -> None:
        ctx = RunContext()
        ctx.cancel()
        strategy = LocalStrategy(workspace=tmp_path, console=MockConsole())

        result = strategy.check(DEPENDENT, target(), ref="main", ctx=ctx)
        assert isinstance(result, Err)
        assert result.error.kind == "cancelled"

    def test_available(self, tmp_path: Path) -> None:
        assert LocalStrategy(workspace=tmp_path, console=MockConsole()).available()
        assert not LocalStrategy(workspace=tmp_path / "nope", console=MockConsole()).available()


class TestRemoteStrategy:
    def test_fetches_go_mod_at_ref(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        seen: list[tuple[str, str, str]] = []

        def fake_get(*, cwd: Path, ctx: RunContext, repo: str, path: str, ref: str):
            del cwd, ctx
            seen.append((repo, path, ref))
            return Ok(f"module github.com/acme/api\nrequire {MODULE} v1.2.3\n")

        monkeypatch.setattr(gh, "get_repo_file_text", fake_get)
        strategy = RemoteStrategy(cwd=tmp_path, console=MockConsole())

        assert strategy.check(DEPENDENT, target(), ref="develop", ctx=RunContext()) == Ok(True)
        assert seen == [("acme/api", "go.mod", "develop")]

    @pytest.mark.parametrize(
        ("gh_kind", "check_kind"),
        [("not_found", "not_found"), ("cancelled", "cancelled"), ("request_failed", "fetch_failed")],
    )
    def test_error_mapping(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, gh_kind: gh.GhErrorKind, check_kind: str
    ) -> None:
        def fake_get(*, cwd: Path, ctx: RunContext, repo: str, path: str, ref: str):
            del cwd, ctx, repo, path, ref
            return Err(gh.GhError(kind=gh_kind, message="gh api failed"))

        monkeypatch.setattr(gh, "get_repo_file_text", fake_get)
        strategy = RemoteStrategy(cwd=tmp_path, console=MockConsole())

        result = strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext())
        assert isinstance(result, Err)
        assert result.error.kind == check_kind


class TestFallbackStrategy:
    def test_primary_success_skips_secondary(self) -> None:
        primary = FakeStrategy({"acme/api": True})
        secondary = FakeStrategy({"acme/api": False})
        strategy = FallbackStrategy(primary=primary, secondary=secondary)

        assert strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext()) == Ok(True)
        assert secondary.calls == []

    def test_primary_error_falls_back(self) -> None:
        primary = FakeStrategy({"acme/api": CheckError(kind="fetch_failed", message="down")})
        secondary = FakeStrategy({"acme/api": True})
        strategy = FallbackStrategy(primary=primary, secondary=secondary)

        assert strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext()) == Ok(True)
        assert secondary.calls == ["acme/api"]

    def test_cancelled_does_not_fall_back(self) -> None:
        primary = FakeStrategy({"acme/api": CheckError(kind="cancelled", message="stop")})
        secondary = FakeStrategy({"acme/api": True})
        strategy = FallbackStrategy(primary=primary, secondary=secondary)

        result = strategy.check(DEPENDENT, target(), ref="main", ctx=RunContext())
        assert isinstance(result, Err)
        assert secondary.calls == []


class TestSelectStrategy:
    def _pair(self, tmp_path: Path) -> tuple[LocalStrategy, RemoteStrategy]:
        console = MockConsole()
        return LocalStrategy(workspace=tmp_path, console=console), RemoteStrategy(cwd=tmp_path, console=console)

    def test_explicit_names(self, tmp_path: Path) -> None:
        local, remote = self._pair(tmp_path)
        assert select_strategy("local", local=local, remote=remote) is local
        assert select_strategy("remote", local=local, remote=remote) is remote

    def test_auto_prefers_remote_with_gh(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(strategies_mod.gh, "is_gh_available", lambda: True)
        local, remote = self._pair(tmp_path)

        strategy = select_strategy("auto", local=local, remote=remote)

        assert isinstance(strategy, FallbackStrategy)
        assert strategy.primary is remote
        assert strategy.secondary is local
        assert strategy.name == "auto"

    def test_auto_without_gh_uses_local(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(strategies_mod.gh, "is_gh_available", lambda: False)
        local, remote = self._pair(tmp_path)

        strategy = select_strategy("auto", local=local, remote=remote)

        assert isinstance(strategy, FallbackStrategy)
        assert strategy.primary is local
        assert strategy.secondary is None
