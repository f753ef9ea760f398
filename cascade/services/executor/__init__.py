"""Per-item execution: dependency bump, verification commands, commit and push."""

from .executor import Executor
from .model import (
    CommandLog,
    ExecutionError,
    ExecutionResult,
    ItemStatus,
    WorkItemContext,
    can_transition,
)

__all__ = [
    "CommandLog",
    "ExecutionError",
    "ExecutionResult",
    "Executor",
    "ItemStatus",
    "WorkItemContext",
    "can_transition",
]
