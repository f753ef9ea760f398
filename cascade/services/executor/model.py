from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

from cascade.services.planner.model import WorkItem

__all__ = [
    "CommandLog",
    "ExecutionError",
    "ExecutionResult",
    "ItemStatus",
    "WorkItemContext",
    "can_transition",
]


class ItemStatus(str, Enum):
    """Lifecycle of one work item: pending -> applying -> terminal."""

    PENDING = "pending"
    APPLYING = "applying"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED, ItemStatus.SKIPPED)

    @property
    def is_done(self) -> bool:
        """Terminal states a resume does not revisit."""
        return self in (ItemStatus.COMPLETED, ItemStatus.SKIPPED)

    def __str__(self) -> str:
        return self.value


_FORWARD: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.APPLYING, ItemStatus.SKIPPED, ItemStatus.FAILED}),
    ItemStatus.APPLYING: frozenset({ItemStatus.COMPLETED, ItemStatus.FAILED, ItemStatus.SKIPPED}),
    ItemStatus.COMPLETED: frozenset(),
    ItemStatus.FAILED: frozenset(),
    ItemStatus.SKIPPED: frozenset(),
}


def can_transition(current: ItemStatus, new: ItemStatus) -> bool:
    """True when ``new`` is ``current`` or a forward move from it."""
    return new == current or new in _FORWARD[current]


@dataclass(frozen=True, slots=True)
class CommandLog:
    command: str
    dir: str
    exit_code: int
    output: str
    duration: float

    def to_dict(self) -> dict[str, object]:
        return {
            "command": self.command,
            "dir": self.dir,
            "exit_code": self.exit_code,
            "output": self.output,
            "duration": round(self.duration, 3),
        }


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    status: ItemStatus
    reason: str = ""
    commit_hash: str | None = None
    command_logs: tuple[CommandLog, ...] = ()


@dataclass(frozen=True, slots=True)
class ExecutionError:
    kind: Literal["invalid_item", "workspace"]
    message: str

    def pretty(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class WorkItemContext:
    """Everything the executor needs for one item beyond the item itself."""

    item: WorkItem
    workspace: Path
    dry_run: bool = False
    command_timeout: float = 5 * 60.0

    @property
    def timeout(self) -> float:
        return self.item.timeout or self.command_timeout

    def env(self) -> dict[str, str] | None:
        """Process environment with the item overlay; None inherits unchanged."""
        if not self.item.env:
            return None
        return {**os.environ, **self.item.env}
