"""Load ``.cascade.yaml`` manifests into typed models.

The manifest is read-only input to the planner. Structural problems are
reported as ``ManifestError`` values; nothing here raises.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import yaml

from cascade.core.durations import parse_duration
from cascade.core.result import Err, Ok, Result
from cascade.core.structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_str_map,
    get_table,
)
from cascade.manifest.model import (
    Command,
    Defaults,
    Dependent,
    Manifest,
    Module,
    Notifications,
    PRConfig,
)

__all__ = ["DEFAULT_MANIFEST_NAME", "ManifestError", "load_manifest", "parse_manifest"]

DEFAULT_MANIFEST_NAME = ".cascade.yaml"
SUPPORTED_MANIFEST_VERSION = 1


@dataclass(frozen=True, slots=True)
class ManifestError:
    kind: Literal["not_found", "unreadable", "invalid_yaml", "invalid"]
    message: str
    path: Path | None = None
    hint: str | None = None

    def pretty(self) -> str:
        where = f" ({self.path})" if self.path is not None else ""
        return f"{self.message}{where}"


class _Invalid(Exception):
    pass


def load_manifest(path: Path) -> Result[Manifest, ManifestError]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Err(
            ManifestError(
                kind="not_found",
                message="manifest not found",
                path=path,
                hint=f"Create {DEFAULT_MANIFEST_NAME} or pass --manifest",
            )
        )
    except (OSError, UnicodeDecodeError) as e:
        return Err(ManifestError(kind="unreadable", message=f"cannot read manifest: {e}", path=path))

    try:
        data_obj: object = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return Err(ManifestError(kind="invalid_yaml", message=f"invalid YAML: {e}", path=path))

    result = parse_manifest(data_obj)
    if isinstance(result, Err):
        return Err(
            ManifestError(kind=result.error.kind, message=result.error.message, path=path)
        )
    return result


def parse_manifest(data_obj: object) -> Result[Manifest, ManifestError]:
    """Validate an already-decoded manifest document."""
    data = as_str_dict(data_obj)
    if data is None:
        return Err(ManifestError(kind="invalid", message="manifest root must be a mapping"))

    try:
        manifest = _manifest(data)
    except _Invalid as e:
        return Err(ManifestError(kind="invalid", message=str(e)))
    return Ok(manifest)


def _manifest(data: StrDict) -> Manifest:
    version = get_int(data, "manifest_version") or SUPPORTED_MANIFEST_VERSION
    if version != SUPPORTED_MANIFEST_VERSION:
        raise _Invalid(f"unsupported manifest_version {version}")

    defaults = _defaults(get_table(data, "defaults") or {})

    modules: list[Module] = []
    for i, raw in enumerate(get_list(data, "modules") or []):
        table = as_str_dict(raw)
        if table is None:
            raise _Invalid(f"modules[{i}] must be a mapping")
        modules.append(_module(table, f"modules[{i}]"))

    return Manifest(manifest_version=version, defaults=defaults, modules=tuple(modules))


def _defaults(table: StrDict) -> Defaults:
    return Defaults(
        branch=get_str(table, "branch") or "main",
        tests=_commands(table, "tests", "defaults"),
        extra_commands=_commands(table, "extra_commands", "defaults"),
        labels=tuple(get_str_list(table, "labels")),
        commit_template=get_str(table, "commit_template"),
        notifications=_notifications(get_table(table, "notifications") or {}),
        pr=_pr(get_table(table, "pr") or {}),
    )


def _module(table: StrDict, where: str) -> Module:
    module_path = get_str(table, "module")
    if module_path is None:
        raise _Invalid(f"{where}.module is required")

    dependents: list[Dependent] = []
    seen: set[tuple[str, str]] = set()
    for i, raw in enumerate(get_list(table, "dependents") or []):
        dep_table = as_str_dict(raw)
        if dep_table is None:
            raise _Invalid(f"{where}.dependents[{i}] must be a mapping")
        dependent = _dependent(dep_table, f"{where}.dependents[{i}]")
        key = (dependent.repo, dependent.module)
        if key in seen:
            raise _Invalid(f"{where}: duplicate dependent {dependent.repo} ({dependent.module})")
        seen.add(key)
        dependents.append(dependent)

    return Module(
        name=get_str(table, "name") or module_path.rsplit("/", 1)[-1],
        module=module_path,
        repo=get_str(table, "repo"),
        dependents=tuple(dependents),
    )


def _dependent(table: StrDict, where: str) -> Dependent:
    repo = get_str(table, "repo")
    if repo is None:
        raise _Invalid(f"{where}.repo is required")
    if repo.count("/") < 1:
        raise _Invalid(f"{where}.repo must look like owner/name (got {repo!r})")

    timeout: float | None = None
    if "timeout" in table:
        timeout = parse_duration(table["timeout"])
        if timeout is None:
            raise _Invalid(f"{where}.timeout is not a valid duration")

    return Dependent(
        repo=repo,
        module=get_str(table, "module") or f"github.com/{repo}",
        module_path=get_str(table, "module_path") or ".",
        clone_url=get_str(table, "clone_url"),
        branch=get_str(table, "branch"),
        tests=_commands(table, "tests", where),
        extra_commands=_commands(table, "extra_commands", where),
        labels=tuple(get_str_list(table, "labels")),
        notifications=_notifications(get_table(table, "notifications") or {}),
        pr=_pr(get_table(table, "pr") or {}),
        skip=get_bool(table, "skip") or False,
        env=get_str_map(table, "env"),
        timeout=timeout,
    )


def _commands(table: Mapping[str, object], key: str, where: str) -> tuple[Command, ...]:
    out: list[Command] = []
    for i, raw in enumerate(get_list(table, key) or []):
        entry = as_str_dict(raw)
        if entry is None:
            raise _Invalid(f"{where}.{key}[{i}] must be a mapping with a cmd")

        argv: list[str]
        cmd_raw = entry.get("cmd")
        if isinstance(cmd_raw, str):
            argv = shlex.split(cmd_raw)
        else:
            argv = get_str_list(entry, "cmd")
        if not argv:
            raise _Invalid(f"{where}.{key}[{i}].cmd must not be empty")

        out.append(Command(cmd=tuple(argv), dir=get_str(entry, "dir") or ""))
    return tuple(out)


def _notifications(table: StrDict) -> Notifications:
    return Notifications(
        slack_channel=get_str(table, "slack_channel"),
        webhook=get_str(table, "webhook"),
        on_success=get_bool(table, "on_success"),
        on_failure=get_bool(table, "on_failure"),
    )


def _pr(table: StrDict) -> PRConfig:
    return PRConfig(
        title=get_str(table, "title"),
        body_template=get_str(table, "body_template"),
        reviewers=tuple(get_str_list(table, "reviewers")),
        team_reviewers=tuple(get_str_list(table, "team_reviewers")),
    )
