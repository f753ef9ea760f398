"""Where a dependent's declared version is read from.

``LocalStrategy`` reads go.mod from a checkout in the workspace;
``RemoteStrategy`` reads it from the hosting provider at the dependent's
base branch. ``select_strategy`` turns the configured name into one of
them (or a fallback pair for ``auto``).
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cascade.core.config import CheckStrategyName
from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.manifest.model import Dependent
from cascade.output.console import ConsoleProtocol
from cascade.services import gh
from cascade.services.checker.gomod import GoMod, parse_go_mod
from cascade.services.checker.model import CheckError, Target
from cascade.services.checker.version import compare_versions, normalize_version, parse_version

__all__ = [
    "CheckStrategy",
    "FallbackStrategy",
    "LocalStrategy",
    "RemoteStrategy",
    "evaluate_go_mod",
    "locate_checkout",
    "select_strategy",
]


class CheckStrategy(Protocol):
    @property
    def name(self) -> CheckStrategyName: ...

    def available(self) -> bool: ...

    def check(
        self, dependent: Dependent, target: Target, *, ref: str, ctx: RunContext
    ) -> Result[bool, CheckError]:
        """Return Ok(True) when the dependent already requires >= target."""
        ...


def evaluate_go_mod(
    go_mod: GoMod,
    dependent: Dependent,
    target: Target,
    *,
    console: ConsoleProtocol,
) -> Result[bool, CheckError]:
    replacement = go_mod.replaces.get(target.module)
    if replacement is not None and replacement.is_local:
        # A filesystem replace pins the dependency to a checkout; always refresh.
        return Ok(False)

    declared = go_mod.requires.get(target.module)
    if replacement is not None and replacement.new_version:
        declared = replacement.new_version

    if declared is None:
        console.warning(f"{dependent.repo}: {target.module} not found in go.mod; treating as up to date")
        return Ok(True)

    have = parse_version(declared)
    want = parse_version(normalize_version(target.version))
    if have is None or want is None:
        return Err(
            CheckError(
                kind="parse_failed",
                message=f"cannot compare versions {declared!r} and {target.version!r}",
            )
        )
    return Ok(compare_versions(have, want) >= 0)


def _repo_parts(dependent: Dependent) -> tuple[str, str, str]:
    owner, _, name = dependent.repo.rpartition("/")
    url = dependent.resolved_clone_url
    host = "github.com"
    if "://" in url:
        host = url.split("://", 1)[1].split("/", 1)[0].rsplit("@", 1)[-1]
    elif "@" in url and ":" in url:
        host = url.split("@", 1)[1].split(":", 1)[0]
    return host, owner, name


def locate_checkout(workspace: Path, dependent: Dependent) -> Path | None:
    """Find the dependent's checkout: <ws>/name, <ws>/owner/name, <ws>/host/owner/name."""
    host, owner, name = _repo_parts(dependent)
    candidates = [workspace / name, workspace / owner / name, workspace / host / owner / name]
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return None


def _go_mod_path(dependent: Dependent) -> str:
    return posixpath.normpath(posixpath.join(dependent.module_path or ".", "go.mod"))


@dataclass(frozen=True, slots=True)
class LocalStrategy:
    workspace: Path
    console: ConsoleProtocol

    @property
    def name(self) -> CheckStrategyName:
        return "local"

    def available(self) -> bool:
        return self.workspace.is_dir()

    def check(
        self, dependent: Dependent, target: Target, *, ref: str, ctx: RunContext
    ) -> Result[bool, CheckError]:
        del ref
        if ctx.cancelled:
            return Err(CheckError(kind="cancelled", message=ctx.reason or "cancelled"))

        checkout = locate_checkout(self.workspace, dependent)
        if checkout is None:
            # Not cloned yet: the executor will clone it and apply the bump.
            self.console.debug(f"{dependent.repo}: no checkout under {self.workspace}")
            return Ok(False)

        go_mod_file = checkout / _go_mod_path(dependent)
        try:
            text = go_mod_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Err(CheckError(kind="not_found", message=f"go.mod not found: {go_mod_file}"))
        except (OSError, UnicodeDecodeError) as e:
            return Err(CheckError(kind="fetch_failed", message=f"cannot read {go_mod_file}: {e}"))

        return evaluate_go_mod(parse_go_mod(text), dependent, target, console=self.console)


@dataclass(frozen=True, slots=True)
class RemoteStrategy:
    cwd: Path
    console: ConsoleProtocol

    @property
    def name(self) -> CheckStrategyName:
        return "remote"

    def available(self) -> bool:
        return gh.is_gh_available()

    def check(
        self, dependent: Dependent, target: Target, *, ref: str, ctx: RunContext
    ) -> Result[bool, CheckError]:
        text = gh.get_repo_file_text(
            cwd=self.cwd,
            ctx=ctx,
            repo=dependent.repo,
            path=_go_mod_path(dependent),
            ref=ref,
        )
        if isinstance(text, Err):
            error = text.error
            match error.kind:
                case "cancelled":
                    return Err(CheckError(kind="cancelled", message=error.pretty()))
                case "not_found":
                    return Err(CheckError(kind="not_found", message=error.pretty()))
                case _:
                    return Err(CheckError(kind="fetch_failed", message=error.pretty()))

        return evaluate_go_mod(parse_go_mod(text.value), dependent, target, console=self.console)


@dataclass(frozen=True, slots=True)
class FallbackStrategy:
    """``auto``: try ``primary``; on error ask ``secondary`` before failing open."""

    primary: CheckStrategy
    secondary: CheckStrategy | None = None

    @property
    def name(self) -> CheckStrategyName:
        return "auto"

    def available(self) -> bool:
        return self.primary.available() or (
            self.secondary is not None and self.secondary.available()
        )

    def check(
        self, dependent: Dependent, target: Target, *, ref: str, ctx: RunContext
    ) -> Result[bool, CheckError]:
        result = self.primary.check(dependent, target, ref=ref, ctx=ctx)
        if isinstance(result, Ok) or self.secondary is None:
            return result
        if result.error.kind == "cancelled" or ctx.cancelled:
            return result
        return self.secondary.check(dependent, target, ref=ref, ctx=ctx)


def select_strategy(
    requested: CheckStrategyName,
    *,
    local: LocalStrategy,
    remote: RemoteStrategy,
) -> CheckStrategy:
    """Resolve the configured strategy name to a concrete strategy.

    ``auto`` prefers remote when ``gh`` is installed, else local, and keeps
    the other one as a fallback when it is usable.
    """
    match requested:
        case "local":
            return local
        case "remote":
            return remote
        case "auto":
            if remote.available():
                return FallbackStrategy(primary=remote, secondary=local if local.available() else None)
            return FallbackStrategy(primary=local, secondary=None)
        case _:
            raise AssertionError(f"unexpected check strategy: {requested}")
