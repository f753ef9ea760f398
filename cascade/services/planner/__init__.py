"""Dependency planning: select stale dependents and build work items."""

from .model import Plan, PlanningError, PlanOptions, PlanStats, Target, WorkItem
from .planner import Planner, resolve_parallelism, validate_target
from .report import performance_warnings, print_plan, print_plan_stats

__all__ = [
    "Plan",
    "PlanOptions",
    "PlanStats",
    "Planner",
    "PlanningError",
    "Target",
    "WorkItem",
    "performance_warnings",
    "print_plan",
    "print_plan_stats",
    "resolve_parallelism",
    "validate_target",
]
