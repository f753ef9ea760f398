"""Run orchestration across planner, executor, broker and state."""

from .runner import ItemOutcome, Pipeline, RunReport, RunServices
from .tracker import StateTracker

__all__ = [
    "ItemOutcome",
    "Pipeline",
    "RunReport",
    "RunServices",
    "StateTracker",
]
