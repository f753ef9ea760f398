from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime

from cascade.core.result import Err, Ok, Result
from cascade.output.console import ConsoleProtocol
from cascade.services.executor.model import CommandLog, ItemStatus
from cascade.services.planner.model import WorkItem
from cascade.services.state import ItemState, RunStatus, StateError, StateManager, Summary

__all__ = ["StateTracker"]


class StateTracker:
    """Persists item records and the run summary while a run progresses.

    Item writes that fail are reported as warnings and the run carries on;
    the in-memory view stays authoritative for the rest of the run. Without
    a manager (dry run) nothing touches the disk.
    """

    def __init__(
        self,
        *,
        manager: StateManager | None,
        summary: Summary,
        console: ConsoleProtocol,
        existing: Mapping[str, ItemState] | None = None,
    ) -> None:
        self._manager = manager
        self._summary = summary
        self._console = console
        self._states: dict[str, ItemState] = dict(existing or {})

    @property
    def summary(self) -> Summary:
        return self._summary

    def previous(self, repo: str) -> ItemState | None:
        return self._states.get(repo)

    def next_attempt(self, repo: str) -> int:
        prev = self._states.get(repo)
        return (prev.attempts if prev is not None else 0) + 1

    def start(self) -> Result[Summary, StateError]:
        """Write the initial summary. A failure here aborts the run."""
        return self._save_summary()

    def record(
        self,
        item: WorkItem,
        status: ItemStatus,
        *,
        reason: str = "",
        commit_hash: str | None = None,
        pr_url: str | None = None,
        command_logs: tuple[CommandLog, ...] = (),
        force: bool = False,
    ) -> ItemState:
        prev = self._states.get(item.repo)
        attempts = prev.attempts if prev is not None else 0
        if status.is_terminal:
            attempts += 1

        state = ItemState(
            repo=item.repo,
            branch=item.branch_name,
            status=status,
            last_updated=self._now(),
            reason=reason,
            commit_hash=commit_hash or (prev.commit_hash if prev is not None else None),
            pr_url=pr_url or (prev.pr_url if prev is not None else None),
            attempts=attempts,
            command_logs=command_logs,
        )
        self._states[item.repo] = state

        if item.repo not in self._summary.items:
            self._summary = replace(self._summary, items=(*self._summary.items, item.repo))

        if self._manager is not None:
            saved = self._manager.save_item_state(
                self._summary.module, self._summary.version, state, force=force
            )
            if isinstance(saved, Err):
                self._console.warning(f"{item.repo}: failed to persist item state: {saved.error.pretty()}")
            self._warn_on_error(self._save_summary())

        return state

    def finalize(self, status: RunStatus) -> Summary:
        self._summary = replace(self._summary, status=status, end_time=self._now())
        self._warn_on_error(self._save_summary())
        return self._summary

    def _save_summary(self) -> Result[Summary, StateError]:
        if self._manager is None:
            return Ok(self._summary)
        saved = self._manager.save_summary(self._summary)
        if isinstance(saved, Ok):
            self._summary = saved.value
        return saved

    def _warn_on_error(self, result: Result[Summary, StateError]) -> None:
        if isinstance(result, Err):
            self._console.warning(f"failed to persist run summary: {result.error.pretty()}")

    def _now(self) -> datetime:
        if self._manager is not None:
            return self._manager.now()
        return datetime.now(UTC)
