from __future__ import annotations

from dataclasses import dataclass, field

from cascade.core.config import DEFAULT_LABEL, NotificationsConfig
from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.output.console import ConsoleProtocol
from cascade.services.broker.github import PullRequestProvider
from cascade.services.broker.model import BrokerError, NotificationResult, PRInput, PullRequest
from cascade.services.broker.notify import (
    HttpPoster,
    MultiNotifier,
    NoopNotifier,
    Notifier,
    SlackNotifier,
    UrllibPoster,
    WebhookNotifier,
)
from cascade.services.broker.templates import render_body, render_title, sanitize_labels
from cascade.services.executor.model import ExecutionResult, ItemStatus
from cascade.services.planner.model import WorkItem

__all__ = ["Broker", "BrokerSettings"]


@dataclass(frozen=True, slots=True)
class BrokerSettings:
    dry_run: bool = False
    default_labels: tuple[str, ...] = (DEFAULT_LABEL,)
    title_template: str | None = None
    body_template: str | None = None
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


class Broker:
    """Review-request and notification lifecycle for executed items.

    ``ensure_pr`` is idempotent: an open pull request for the item's head
    branch is returned as-is instead of creating another one, which is what
    makes resumed runs safe. Notifications never fail an item.
    """

    def __init__(
        self,
        *,
        provider: PullRequestProvider,
        console: ConsoleProtocol,
        settings: BrokerSettings | None = None,
        http: HttpPoster | None = None,
    ) -> None:
        self._provider = provider
        self._console = console
        self._settings = settings or BrokerSettings()
        self._http = http

    def merge_labels(self, item_labels: tuple[str, ...]) -> tuple[str, ...]:
        return sanitize_labels(list(self._settings.default_labels) + list(item_labels))

    def ensure_pr(
        self,
        item: WorkItem,
        result: ExecutionResult,
        *,
        ctx: RunContext,
    ) -> Result[PullRequest | None, BrokerError]:
        labels = self.merge_labels(item.labels)
        if self._settings.dry_run:
            return Ok(
                PullRequest(
                    repo=item.repo,
                    url=f"https://github.com/{item.repo}/pull/0",
                    number=0,
                    head_branch=item.branch_name,
                    labels=labels,
                )
            )

        if result.status == ItemStatus.FAILED:
            self._console.info(f"{item.repo}: skipping pull request for failed update")
            return Ok(None)

        pr_input = PRInput(
            repo=item.repo,
            base_branch=item.branch,
            head_branch=item.branch_name,
            title=render_title(item.pr.title or self._settings.title_template, item),
            body=render_body(item.pr.body_template or self._settings.body_template, item, result),
            labels=labels,
        )
        invalid = _validate(pr_input)
        if invalid is not None:
            return Err(invalid)

        existing = self._provider.find_open_pr(item.repo, item.branch_name, ctx=ctx)
        if isinstance(existing, Err):
            return existing
        if existing.value is not None:
            self._console.info(f"{item.repo}: pull request already open: {existing.value.url}")
            return Ok(existing.value)

        created = self._provider.create_pr(pr_input, ctx=ctx)
        if isinstance(created, Err):
            return created
        pr = created.value
        self._console.success(f"{item.repo}: opened {pr.url}")

        if item.pr.reviewers or item.pr.team_reviewers:
            requested = self._provider.request_reviewers(
                pr,
                reviewers=item.pr.reviewers,
                team_reviewers=item.pr.team_reviewers,
                ctx=ctx,
            )
            if isinstance(requested, Err):
                self._console.warning(f"{item.repo}: reviewer request failed: {requested.error.pretty()}")

        return Ok(pr)

    def comment(self, pr: PullRequest, body: str, *, ctx: RunContext) -> Result[None, BrokerError]:
        """Append a comment. Not deduplicated: every call posts a new one."""
        if self._settings.dry_run:
            return Ok(None)
        if not body.strip():
            return Err(BrokerError(kind="invalid_input", message="comment body cannot be empty"))
        return self._provider.add_comment(pr, body, ctx=ctx)

    def notify(
        self,
        item: WorkItem,
        result: ExecutionResult,
        *,
        ctx: RunContext,
    ) -> NotificationResult | None:
        if self._settings.dry_run:
            return None

        notifier = self._notifier_for(item, result)
        if notifier is None:
            self._console.debug(f"{item.repo}: notification disabled for status {result.status}")
            return None

        sent = notifier.send(item, result, ctx=ctx)
        if isinstance(sent, Err):
            self._console.warning(f"{item.repo}: notification failed: {sent.error.pretty()}")
            return None

        if sent.value.channel == "noop":
            self._console.debug(f"{item.repo}: {sent.value.message}")
        return sent.value

    def _notifier_for(self, item: WorkItem, result: ExecutionResult) -> Notifier | None:
        defaults = self._settings.notifications
        prefs = item.notifications
        on_success = defaults.on_success if prefs.on_success is None else prefs.on_success
        on_failure = defaults.on_failure if prefs.on_failure is None else prefs.on_failure
        if result.status == ItemStatus.FAILED and not on_failure:
            return None
        if result.status != ItemStatus.FAILED and not on_success:
            return None

        http = self._http or UrllibPoster()
        notifiers: list[Notifier] = []
        channel = prefs.slack_channel or defaults.slack_channel
        if channel and defaults.slack_token:
            notifiers.append(SlackNotifier(token=defaults.slack_token, channel=channel, http=http))
        webhook = prefs.webhook or defaults.webhook
        if webhook:
            notifiers.append(WebhookNotifier(url=webhook, http=http))

        if not notifiers:
            return NoopNotifier()
        if len(notifiers) == 1:
            return notifiers[0]
        return MultiNotifier(notifiers)


def _validate(pr: PRInput) -> BrokerError | None:
    if not pr.title:
        return BrokerError(kind="invalid_input", message="pull request title is empty")
    if not pr.head_branch or not pr.base_branch:
        return BrokerError(kind="invalid_input", message="pull request needs base and head branches")
    if pr.head_branch == pr.base_branch:
        return BrokerError(
            kind="invalid_input",
            message=f"head branch equals base branch ({pr.head_branch})",
        )
    return None
