from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from cascade.manifest.model import Dependent

CheckSource = Literal["cache", "fresh"]

CheckErrorKind = Literal[
    "timeout",
    "cancelled",
    "fetch_failed",
    "not_found",
    "parse_failed",
]


@dataclass(frozen=True, slots=True)
class Target:
    """The module version being propagated."""

    module: str
    version: str

    @property
    def state_id(self) -> str:
        return f"{self.module}@{self.version}"

    def __str__(self) -> str:
        return self.state_id


@dataclass(frozen=True, slots=True)
class CheckError:
    kind: CheckErrorKind
    message: str

    def pretty(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Freshness of one dependent against the target.

    An errored result is never trusted as up to date.
    """

    up_to_date: bool
    source: CheckSource
    error: CheckError | None = None

    @property
    def needs_update(self) -> bool:
        return self.error is not None or not self.up_to_date


@dataclass(frozen=True, slots=True)
class CacheKey:
    repo: str
    module: str
    ref: str
    target_module: str
    target_version: str

    @classmethod
    def for_dependent(cls, dependent: Dependent, target: Target, *, ref: str) -> CacheKey:
        return cls(
            repo=dependent.repo,
            module=dependent.module,
            ref=ref,
            target_module=target.module,
            target_version=target.version,
        )
