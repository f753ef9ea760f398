from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.manifest.model import Command
from cascade.output.console import ConsoleProtocol
from cascade.platform.process import ProcessError
from cascade.services.executor import git
from cascade.services.executor.commands import StepRunner
from cascade.services.executor.model import (
    ExecutionError,
    ExecutionResult,
    ItemStatus,
    WorkItemContext,
    can_transition,
)
from cascade.services.timeouts import GO_MOD_TIMEOUT_SECONDS

__all__ = ["Executor"]

type TransitionHook = Callable[[ItemStatus], None]


class _Machine:
    """Tracks one item's status and rejects backwards moves."""

    def __init__(self, on_transition: TransitionHook | None) -> None:
        self.status = ItemStatus.PENDING
        self._hook = on_transition

    def move(self, new: ItemStatus) -> None:
        if not can_transition(self.status, new):
            raise AssertionError(f"invalid transition {self.status} -> {new}")
        if new == self.status:
            return
        self.status = new
        if self._hook is not None:
            self._hook(new)


class Executor:
    """Applies one work item: bump the dependency, verify, commit, push.

    Pending -> Applying -> Completed | Failed | Skipped. A failing command
    ends the item as Failed with the command and its output tail as the
    reason; it never affects other items.
    """

    def __init__(self, *, console: ConsoleProtocol) -> None:
        self._console = console

    def apply(
        self,
        ctx: RunContext,
        work: WorkItemContext,
        *,
        on_transition: TransitionHook | None = None,
    ) -> Result[ExecutionResult, ExecutionError]:
        item = work.item
        if not item.repo or not item.branch_name:
            return Err(ExecutionError(kind="invalid_item", message="work item needs a repo and a branch name"))
        if not work.workspace.is_dir():
            try:
                work.workspace.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                return Err(ExecutionError(kind="workspace", message=f"cannot create workspace {work.workspace}: {e}"))

        machine = _Machine(on_transition)
        if work.dry_run:
            machine.move(ItemStatus.SKIPPED)
            return Ok(
                ExecutionResult(
                    status=ItemStatus.SKIPPED,
                    reason=f"dry run: would update {item.source_module} to {item.source_version}",
                )
            )

        machine.move(ItemStatus.APPLYING)
        runner = StepRunner(ctx=ctx, env=work.env(), timeout=work.timeout)
        result = self._apply(runner, work)
        machine.move(result.status)
        return Ok(result)

    def _apply(self, runner: StepRunner, work: WorkItemContext) -> ExecutionResult:
        item = work.item

        def failed(step: str, error: ProcessError) -> ExecutionResult:
            reason = f"{step} failed: {' '.join(error.command)} (exit {error.returncode})"
            excerpt = error.excerpt(500)
            if excerpt:
                reason += f"\n{excerpt}"
            self._console.error(f"{item.repo}: {step} failed")
            return ExecutionResult(
                status=ItemStatus.FAILED,
                reason=reason,
                command_logs=tuple(runner.logs),
            )

        self._console.info(f"{item.repo}: updating {item.source_module} to {item.source_version}")

        repo_dir = git.ensure_clone(runner, workspace=work.workspace, item=item)
        if isinstance(repo_dir, Err):
            return failed("clone", repo_dir.error)

        worktree = git.ensure_worktree(runner, repo_dir=repo_dir.value, item=item)
        if isinstance(worktree, Err):
            return failed("worktree", worktree.error)

        module_dir = worktree.value / item.module_path
        target = f"{item.source_module}@{item.source_version}"
        for cmd in (["go", "get", target], ["go", "mod", "tidy"]):
            bumped = runner.run(cmd, cwd=module_dir, timeout=GO_MOD_TIMEOUT_SECONDS)
            if isinstance(bumped, Err):
                return failed("dependency update", bumped.error)

        for label, commands in (("test", item.tests), ("extra command", item.extra_commands)):
            for command in commands:
                outcome = self._run_command(runner, command, module_dir=module_dir)
                if isinstance(outcome, Err):
                    return failed(label, outcome.error)

        changed = git.has_changes(runner, worktree=worktree.value)
        if isinstance(changed, Err):
            return failed("status", changed.error)
        if not changed.value:
            return ExecutionResult(
                status=ItemStatus.SKIPPED,
                reason=f"no changes: {item.repo} already requires {target}",
                command_logs=tuple(runner.logs),
            )

        commit = git.commit_all(runner, worktree=worktree.value, message=item.commit_message)
        if isinstance(commit, Err):
            return failed("commit", commit.error)

        pushed = git.push_branch(runner, worktree=worktree.value, branch=item.branch_name)
        if isinstance(pushed, Err):
            return failed("push", pushed.error)

        self._console.success(f"{item.repo}: pushed {item.branch_name} ({commit.value[:8]})")
        return ExecutionResult(
            status=ItemStatus.COMPLETED,
            reason=f"updated {item.source_module} to {item.source_version}",
            commit_hash=commit.value,
            command_logs=tuple(runner.logs),
        )

    def _run_command(
        self,
        runner: StepRunner,
        command: Command,
        *,
        module_dir: Path,
    ) -> Result[str, ProcessError]:
        cwd = module_dir / command.dir if command.dir else module_dir
        self._console.debug(f"$ {command.display()} (in {cwd})")
        return runner.run(list(command.cmd), cwd=cwd)
