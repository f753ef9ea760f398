from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from cascade.core.result import Err
from cascade.output.console import MockConsole
from cascade.pipeline.tracker import StateTracker
from cascade.services.executor.model import ItemStatus
from cascade.services.planner.model import WorkItem
from cascade.services.state import ItemState, StateManager, Summary

NOW = datetime(2026, 5, 6, 7, 8, 9, tzinfo=UTC)
ITEM = WorkItem(
    repo="acme/api",
    module="github.com/acme/api",
    source_module="github.com/acme/lib",
    source_version="v1.2.3",
    branch_name="auto/lib-v1.2.3",
    commit_message="Update",
    clone_url="https://github.com/acme/api.git",
)


def _summary() -> Summary:
    return Summary(module="github.com/acme/lib", version="v1.2.3", start_time=NOW)


def test_attempts_count_terminal_records() -> None:
    tracker = StateTracker(manager=None, summary=_summary(), console=MockConsole())

    tracker.record(ITEM, ItemStatus.PENDING)
    tracker.record(ITEM, ItemStatus.APPLYING)
    assert tracker.next_attempt("acme/api") == 1

    state = tracker.record(ITEM, ItemStatus.FAILED, reason="boom")
    assert state.attempts == 1
    assert tracker.next_attempt("acme/api") == 2


def test_previous_pr_and_commit_are_kept() -> None:
    existing = ItemState(
        repo="acme/api",
        branch="auto/lib-v1.2.3",
        status=ItemStatus.FAILED,
        last_updated=NOW,
        pr_url="https://github.com/acme/api/pull/3",
        commit_hash="abc",
        attempts=1,
    )
    tracker = StateTracker(
        manager=None, summary=_summary(), console=MockConsole(), existing={"acme/api": existing}
    )

    state = tracker.record(ITEM, ItemStatus.PENDING, force=True)

    assert state.pr_url == "https://github.com/acme/api/pull/3"
    assert state.commit_hash == "abc"
    assert state.attempts == 1
    assert tracker.previous("acme/api") == state


def test_record_adds_repo_to_summary_once() -> None:
    tracker = StateTracker(manager=None, summary=_summary(), console=MockConsole())

    tracker.record(ITEM, ItemStatus.PENDING)
    tracker.record(ITEM, ItemStatus.APPLYING)

    assert tracker.summary.items == ("acme/api",)


def test_persists_through_manager(tmp_path: Path) -> None:
    manager = StateManager(root=tmp_path, clock=lambda: NOW)
    tracker = StateTracker(manager=manager, summary=_summary(), console=MockConsole())
    tracker.start()

    tracker.record(ITEM, ItemStatus.PENDING)
    finished = tracker.finalize("completed")

    assert finished.end_time == NOW
    loaded = manager.load_item_state("github.com/acme/lib", "v1.2.3", "acme/api")
    assert loaded.unwrap() is not None
    assert manager.load_summary("github.com/acme/lib", "v1.2.3").unwrap().status == "completed"


def test_write_failures_only_warn(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    console = MockConsole()
    tracker = StateTracker(manager=StateManager(root=blocker), summary=_summary(), console=console)

    state = tracker.record(ITEM, ItemStatus.PENDING)

    assert state.status == ItemStatus.PENDING
    assert any("failed to persist item state" in w for w in console.warnings())
    assert any("failed to persist run summary" in w for w in console.warnings())


def test_start_failure_is_returned(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    tracker = StateTracker(manager=StateManager(root=blocker), summary=_summary(), console=MockConsole())

    result = tracker.start()

    assert isinstance(result, Err)
