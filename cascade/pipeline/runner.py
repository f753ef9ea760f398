"""Run orchestration: execute a plan item by item, then resume it later.

Per item the order is fixed: executor result, then the broker (pull request
and notification), then the state write. A crash between steps therefore
leaves the item in a non-final state that the next resume re-enters.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from cascade.core.config import DEFAULT_COMMAND_TIMEOUT_SECONDS
from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.manifest.model import Manifest
from cascade.output.console import ConsoleProtocol, Style
from cascade.pipeline.tracker import StateTracker
from cascade.services.broker import Broker
from cascade.services.executor import Executor
from cascade.services.executor.model import ExecutionResult, ItemStatus, WorkItemContext
from cascade.services.planner import Planner
from cascade.services.planner.model import Plan, PlanningError, Target, WorkItem
from cascade.services.planner.planner import validate_target
from cascade.services.state import ItemState, RunStatus, StateError, StateManager, Summary

__all__ = ["ItemOutcome", "Pipeline", "RunReport", "RunServices"]


@dataclass(frozen=True, slots=True)
class RunServices:
    """Collaborators for one run, built once by the CLI (or a test)."""

    planner: Planner
    executor: Executor
    broker: Broker
    state: StateManager
    console: ConsoleProtocol
    workspace: Path
    dry_run: bool = False
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    repo: str
    status: ItemStatus
    reason: str = ""
    pr_url: str | None = None
    commit_hash: str | None = None
    attempts: int = 0
    resumed: bool = False


@dataclass(frozen=True, slots=True)
class RunReport:
    target: Target
    status: RunStatus
    outcomes: tuple[ItemOutcome, ...] = ()
    already_done: tuple[str, ...] = ()
    skipped_up_to_date: int = 0
    retry_count: int = 0

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == ItemStatus.FAILED]

    @property
    def completed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == ItemStatus.COMPLETED]

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"


class Pipeline:
    def __init__(self, services: RunServices) -> None:
        self._s = services

    def run(self, plan: Plan, *, ctx: RunContext) -> Result[RunReport, StateError]:
        """Execute every item of a freshly computed plan.

        Earlier records for the same module version are discarded, including
        repos this plan no longer contains; use ``resume`` to continue a
        previous run instead.
        """
        if not self._s.dry_run:
            discarded = self._s.state.discard(plan.target.module, plan.target.version)
            if isinstance(discarded, Err):
                return discarded

        summary = Summary(
            module=plan.target.module,
            version=plan.target.version,
            start_time=self._s.state.now(),
            skipped_up_to_date=plan.stats.skipped_up_to_date,
        )
        tracker = StateTracker(
            manager=None if self._s.dry_run else self._s.state,
            summary=summary,
            console=self._s.console,
        )
        started = tracker.start()
        if isinstance(started, Err):
            return started

        for item in plan.items:
            tracker.record(item, ItemStatus.PENDING, force=True)

        return Ok(self._execute(plan, tracker, ctx=ctx))

    def resume(
        self,
        manifest: Manifest,
        target: Target,
        *,
        ctx: RunContext,
    ) -> Result[RunReport, PlanningError | StateError]:
        """Continue a previous run of ``target``.

        Items already completed or skipped are reported and left alone; the
        executor and broker are not invoked for them. Everything else is
        reset to pending and executed again.
        """
        canonical = _canonical_target(manifest, target)
        if isinstance(canonical, Err):
            return canonical
        target = canonical.value

        loaded = self._s.state.load_summary(target.module, target.version)
        if isinstance(loaded, Err):
            return loaded
        previous = self._s.state.load_item_states(target.module, target.version)
        if isinstance(previous, Err):
            return previous

        planned = self._s.planner.plan(manifest, target, ctx=ctx)
        if isinstance(planned, Err):
            return planned
        plan = planned.value

        summary = replace(
            loaded.value,
            status="running",
            end_time=None,
            retry_count=loaded.value.retry_count + 1,
            skipped_up_to_date=plan.stats.skipped_up_to_date,
        )
        tracker = StateTracker(
            manager=None if self._s.dry_run else self._s.state,
            summary=summary,
            console=self._s.console,
            existing={state.repo: state for state in previous.value},
        )
        started = tracker.start()
        if isinstance(started, Err):
            return started

        self._s.console.info(
            f"Resuming {target} (retry {summary.retry_count}, {len(previous.value)} recorded items)"
        )
        return Ok(self._execute(plan, tracker, ctx=ctx))

    def _execute(self, plan: Plan, tracker: StateTracker, *, ctx: RunContext) -> RunReport:
        console = self._s.console
        outcomes: list[ItemOutcome] = []
        already_done: list[str] = []
        cancelled = False

        console.header(f"Executing updates for {plan.target}")
        for index, item in enumerate(plan.items, start=1):
            if ctx.cancelled:
                console.warning(f"Run cancelled ({ctx.reason}); {len(plan.items) - index + 1} items left pending")
                cancelled = True
                break

            console.print(f"  {index}. {item.repo} ({item.module}) -> {item.branch_name}")
            prev = tracker.previous(item.repo)
            if prev is not None and prev.status.is_done:
                already_done.append(item.repo)
                console.print(f"    already {prev.status}: {prev.pr_url or prev.reason}", Style.DIM)
                continue

            resumed = False
            if prev is not None and prev.status != ItemStatus.PENDING:
                resumed = True
                tracker.record(item, ItemStatus.PENDING, reason=f"reset from {prev.status}", force=True)

            outcome = self._process(item, tracker, ctx=ctx)
            outcomes.append(replace(outcome, resumed=resumed))
            _print_outcome(console, outcome)

        status: RunStatus
        if cancelled:
            status = "cancelled"
        elif any(o.status == ItemStatus.FAILED for o in outcomes):
            status = "failed"
        else:
            status = "completed"
        summary = tracker.finalize(status)

        return RunReport(
            target=plan.target,
            status=status,
            outcomes=tuple(outcomes),
            already_done=tuple(already_done),
            skipped_up_to_date=summary.skipped_up_to_date,
            retry_count=summary.retry_count,
        )

    def _process(self, item: WorkItem, tracker: StateTracker, *, ctx: RunContext) -> ItemOutcome:
        s = self._s
        work = WorkItemContext(
            item=item,
            workspace=s.workspace,
            dry_run=s.dry_run,
            command_timeout=s.command_timeout,
        )

        def on_transition(status: ItemStatus) -> None:
            if status == ItemStatus.APPLYING:
                tracker.record(item, status, reason="applying")

        applied = s.executor.apply(ctx, work, on_transition=on_transition)
        if isinstance(applied, Err):
            s.console.error(f"{item.repo}: {applied.error.pretty()}")
            result = ExecutionResult(status=ItemStatus.FAILED, reason=applied.error.pretty())
        else:
            result = applied.value

        attempt = tracker.next_attempt(item.repo)
        pr_url: str | None = None
        if result.status == ItemStatus.COMPLETED or s.dry_run:
            ensured = s.broker.ensure_pr(item, result, ctx=ctx)
            match ensured:
                case Err(error):
                    s.console.error(f"{item.repo}: pull request failed")
                    result = replace(
                        result,
                        status=ItemStatus.FAILED,
                        reason=f"pull request failed: {error.pretty()}",
                    )
                case Ok(pr) if pr is not None:
                    pr_url = pr.url
                    if attempt > 1 and not s.dry_run:
                        commented = s.broker.comment(pr, _retry_comment(item, result, attempt), ctx=ctx)
                        if isinstance(commented, Err):
                            s.console.warning(f"{item.repo}: retry comment failed: {commented.error.pretty()}")
                case _:
                    pass

        s.broker.notify(item, result, ctx=ctx)

        state: ItemState = tracker.record(
            item,
            result.status,
            reason=result.reason,
            commit_hash=result.commit_hash,
            pr_url=pr_url,
            command_logs=result.command_logs,
        )
        return ItemOutcome(
            repo=item.repo,
            status=state.status,
            reason=state.reason,
            pr_url=state.pr_url,
            commit_hash=state.commit_hash,
            attempts=state.attempts,
        )


def _canonical_target(manifest: Manifest, target: Target) -> Result[Target, PlanningError]:
    validated = validate_target(target)
    if isinstance(validated, Err):
        return validated
    module = manifest.find_module(validated.value.module)
    if module is None:
        return Err(
            PlanningError(
                kind="module_not_found",
                message=f"module not declared in manifest: {validated.value.module}",
            )
        )
    return Ok(Target(module=module.module, version=validated.value.version))


def _retry_comment(item: WorkItem, result: ExecutionResult, attempt: int) -> str:
    commit = f" at {result.commit_hash[:8]}" if result.commit_hash else ""
    return (
        f"Attempt {attempt}: re-applied {item.source_module} {item.source_version}{commit}.\n\n"
        "Pushed by cascade resume."
    )


def _print_outcome(console: ConsoleProtocol, outcome: ItemOutcome) -> None:
    match outcome.status:
        case ItemStatus.COMPLETED:
            if outcome.pr_url:
                console.success(f"    PR: {outcome.pr_url}")
            else:
                console.success(f"    completed with commit {outcome.commit_hash}")
        case ItemStatus.SKIPPED:
            console.print(f"    skipped: {outcome.reason}", Style.DIM)
        case _:
            first_line = outcome.reason.splitlines()[0] if outcome.reason else "unknown error"
            console.error(f"    failed: {first_line}")
