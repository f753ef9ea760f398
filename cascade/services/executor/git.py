"""Git plumbing for applying a work item in an isolated worktree.

Layout under the workspace::

    <workspace>/<owner>/<name>/                       clone
    <workspace>/<owner>/<name>/.worktrees/<branch>/   one worktree per update branch

Re-running any step is safe: an existing clone is fetched, an existing
worktree is reset onto the base branch.
"""

from __future__ import annotations

from pathlib import Path

from cascade.core.result import Err, Ok, Result
from cascade.platform.process import ProcessError
from cascade.services.executor.commands import StepRunner
from cascade.services.planner.model import WorkItem
from cascade.services.timeouts import GIT_NETWORK_TIMEOUT_SECONDS, GIT_TIMEOUT_SECONDS

__all__ = [
    "checkout_path",
    "commit_all",
    "ensure_clone",
    "ensure_worktree",
    "has_changes",
    "push_branch",
    "worktree_path",
]

WORKTREES_DIR = ".worktrees"


def checkout_path(workspace: Path, item: WorkItem) -> Path:
    owner, _, name = item.repo.rpartition("/")
    return workspace / owner / name if owner else workspace / name


def worktree_path(repo_dir: Path, item: WorkItem) -> Path:
    return repo_dir / WORKTREES_DIR / item.branch_name.replace("/", "-")


def ensure_clone(runner: StepRunner, *, workspace: Path, item: WorkItem) -> Result[Path, ProcessError]:
    repo_dir = checkout_path(workspace, item)
    if (repo_dir / ".git").exists():
        fetched = runner.run(
            ["git", "fetch", "--prune", "origin"],
            cwd=repo_dir,
            timeout=GIT_NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(fetched, Err):
            return fetched
        return Ok(repo_dir)

    repo_dir.parent.mkdir(parents=True, exist_ok=True)
    cloned = runner.run(
        ["git", "clone", item.clone_url, str(repo_dir)],
        cwd=repo_dir.parent,
        timeout=GIT_NETWORK_TIMEOUT_SECONDS,
    )
    if isinstance(cloned, Err):
        return cloned
    return Ok(repo_dir)


def ensure_worktree(runner: StepRunner, *, repo_dir: Path, item: WorkItem) -> Result[Path, ProcessError]:
    path = worktree_path(repo_dir, item)
    base = f"origin/{item.branch}"
    if path.exists():
        result = runner.run(
            ["git", "checkout", "-B", item.branch_name, base],
            cwd=path,
            timeout=GIT_TIMEOUT_SECONDS,
        )
        if isinstance(result, Ok):
            result = runner.run(["git", "reset", "--hard", base], cwd=path, timeout=GIT_TIMEOUT_SECONDS)
    else:
        result = runner.run(
            ["git", "worktree", "add", "-B", item.branch_name, str(path), base],
            cwd=repo_dir,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    if isinstance(result, Err):
        return result
    return Ok(path)


def has_changes(runner: StepRunner, *, worktree: Path) -> Result[bool, ProcessError]:
    result = runner.run(["git", "status", "--porcelain"], cwd=worktree, timeout=GIT_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return result
    return Ok(bool(result.value.strip()))


def commit_all(runner: StepRunner, *, worktree: Path, message: str) -> Result[str, ProcessError]:
    """Stage everything, commit, and return the new commit hash."""
    for cmd in (["git", "add", "-A"], ["git", "commit", "-m", message]):
        result = runner.run(cmd, cwd=worktree, timeout=GIT_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return result

    head = runner.run(["git", "rev-parse", "HEAD"], cwd=worktree, timeout=GIT_TIMEOUT_SECONDS)
    if isinstance(head, Err):
        return head
    return Ok(head.value.strip())


def push_branch(runner: StepRunner, *, worktree: Path, branch: str) -> Result[None, ProcessError]:
    # The update branch is owned by cascade; a retry replaces what an earlier attempt pushed.
    result = runner.run(
        ["git", "push", "--force", "-u", "origin", branch],
        cwd=worktree,
        timeout=GIT_NETWORK_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return result
    return Ok(None)
