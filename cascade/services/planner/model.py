from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from cascade.core.config import CheckStrategyName
from cascade.manifest.model import Command, Notifications, PRConfig
from cascade.services.checker.model import Target

__all__ = [
    "Plan",
    "PlanOptions",
    "PlanStats",
    "PlanningError",
    "Target",
    "WorkItem",
]


@dataclass(frozen=True, slots=True)
class PlanningError:
    kind: Literal["invalid_target", "module_not_found", "cancelled"]
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message}\nhint: {self.hint}"
        return self.message


@dataclass(frozen=True, slots=True)
class PlanOptions:
    strategy: CheckStrategyName = "auto"
    parallel: int = 0
    skip_up_to_date: bool = True
    force_all: bool = False


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One dependent's planned update."""

    repo: str
    module: str
    source_module: str
    source_version: str
    branch_name: str
    commit_message: str
    clone_url: str
    module_path: str = "."
    branch: str = "main"
    tests: tuple[Command, ...] = ()
    extra_commands: tuple[Command, ...] = ()
    labels: tuple[str, ...] = ()
    pr: PRConfig = field(default_factory=PRConfig)
    notifications: Notifications = field(default_factory=Notifications)
    env: dict[str, str] = field(default_factory=dict[str, str])
    timeout: float | None = None


@dataclass(frozen=True, slots=True)
class PlanStats:
    """Planning counters.

    ``skipped_up_to_date + work_items_created + check_errors`` equals
    ``total_dependents``; errored dependents are still planned.
    """

    total_dependents: int = 0
    skipped_up_to_date: int = 0
    work_items_created: int = 0
    check_errors: int = 0
    check_duration: float = 0.0
    check_strategy: CheckStrategyName = "local"
    parallel_checks: bool = False
    workers: int = 1
    cache_hits: int = 0
    cache_misses: int = 0
    skipped_repos: tuple[str, ...] = ()

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total else 0.0


@dataclass(frozen=True, slots=True)
class Plan:
    target: Target
    items: tuple[WorkItem, ...] = ()
    stats: PlanStats = field(default_factory=PlanStats)

    def find(self, repo: str) -> WorkItem | None:
        for item in self.items:
            if item.repo == repo:
                return item
        return None
