"""Pull request transport backed by the GitHub CLI."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Literal, Protocol

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.core.structured import as_obj_list, as_str_dict, get_int, get_list, get_str
from cascade.services import gh
from cascade.services.broker.model import BrokerError, PRInput, PullRequest
from cascade.services.timeouts import GH_READ_RETRY_ATTEMPTS

__all__ = ["GhPullRequestProvider", "PullRequestProvider"]

_PR_NUMBER_RE = re.compile(r"/pull/(\d+)")


class PullRequestProvider(Protocol):
    def find_open_pr(self, repo: str, head: str, *, ctx: RunContext) -> Result[PullRequest | None, BrokerError]: ...

    def create_pr(self, pr: PRInput, *, ctx: RunContext) -> Result[PullRequest, BrokerError]: ...

    def add_comment(self, pr: PullRequest, body: str, *, ctx: RunContext) -> Result[None, BrokerError]: ...

    def request_reviewers(
        self,
        pr: PullRequest,
        *,
        reviewers: tuple[str, ...],
        team_reviewers: tuple[str, ...],
        ctx: RunContext,
    ) -> Result[None, BrokerError]: ...


def _provider_error(error: gh.GhError) -> BrokerError:
    kind: Literal["cancelled", "provider"] = "cancelled" if error.kind == "cancelled" else "provider"
    return BrokerError(kind=kind, message=error.message, hint=error.hint)


def _parse_pr(repo: str, raw: object) -> PullRequest | None:
    data = as_str_dict(raw)
    if data is None:
        return None
    url = get_str(data, "url")
    number = get_int(data, "number")
    head = get_str(data, "headRefName")
    if url is None or number is None or head is None:
        return None

    labels: list[str] = []
    for label in get_list(data, "labels") or []:
        entry = as_str_dict(label)
        name = get_str(entry, "name") if entry is not None else None
        if name:
            labels.append(name)
    return PullRequest(repo=repo, url=url, number=number, head_branch=head, labels=tuple(labels))


class GhPullRequestProvider:
    def __init__(self, *, cwd: Path) -> None:
        self._cwd = cwd

    def find_open_pr(self, repo: str, head: str, *, ctx: RunContext) -> Result[PullRequest | None, BrokerError]:
        result = gh.run_gh(
            [
                "gh",
                "pr",
                "list",
                "--repo",
                repo,
                "--head",
                head,
                "--state",
                "open",
                "--json",
                "number,url,headRefName,labels",
            ],
            cwd=self._cwd,
            ctx=ctx,
            message=f"cannot list pull requests for {repo}",
            retry_attempts=GH_READ_RETRY_ATTEMPTS,
        )
        if isinstance(result, Err):
            return Err(_provider_error(result.error))

        try:
            payload: object = json.loads(result.value or "[]")
        except json.JSONDecodeError as e:
            return Err(BrokerError(kind="provider", message=f"gh pr list returned invalid JSON: {e}"))

        for raw in as_obj_list(payload) or []:
            pr = _parse_pr(repo, raw)
            if pr is not None and pr.head_branch == head:
                return Ok(pr)
        return Ok(None)

    def create_pr(self, pr: PRInput, *, ctx: RunContext) -> Result[PullRequest, BrokerError]:
        cmd = [
            "gh",
            "pr",
            "create",
            "--repo",
            pr.repo,
            "--base",
            pr.base_branch,
            "--head",
            pr.head_branch,
            "--title",
            pr.title,
            "--body",
            pr.body,
        ]
        for label in pr.labels:
            cmd.extend(["--label", label])

        result = gh.run_gh(cmd, cwd=self._cwd, ctx=ctx, message=f"cannot create pull request for {pr.repo}")
        if isinstance(result, Err):
            return Err(_provider_error(result.error))

        url = result.value.strip().splitlines()[-1] if result.value.strip() else ""
        match = _PR_NUMBER_RE.search(url)
        if match is None:
            return Err(
                BrokerError(
                    kind="provider",
                    message="gh pr create did not return a pull request URL",
                    hint=result.value.strip() or None,
                )
            )
        return Ok(
            PullRequest(
                repo=pr.repo,
                url=url,
                number=int(match.group(1)),
                head_branch=pr.head_branch,
                labels=pr.labels,
            )
        )

    def add_comment(self, pr: PullRequest, body: str, *, ctx: RunContext) -> Result[None, BrokerError]:
        result = gh.run_gh(
            ["gh", "pr", "comment", str(pr.number), "--repo", pr.repo, "--body", body],
            cwd=self._cwd,
            ctx=ctx,
            message=f"cannot comment on {pr.repo}#{pr.number}",
        )
        if isinstance(result, Err):
            return Err(_provider_error(result.error))
        return Ok(None)

    def request_reviewers(
        self,
        pr: PullRequest,
        *,
        reviewers: tuple[str, ...],
        team_reviewers: tuple[str, ...],
        ctx: RunContext,
    ) -> Result[None, BrokerError]:
        names = list(reviewers) + list(team_reviewers)
        if not names:
            return Ok(None)
        result = gh.run_gh(
            ["gh", "pr", "edit", str(pr.number), "--repo", pr.repo, "--add-reviewer", ",".join(names)],
            cwd=self._cwd,
            ctx=ctx,
            message=f"cannot request reviewers on {pr.repo}#{pr.number}",
        )
        if isinstance(result, Err):
            return Err(_provider_error(result.error))
        return Ok(None)
