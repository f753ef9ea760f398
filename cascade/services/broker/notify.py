"""Notification delivery: Slack, generic webhooks, and fan-out.

Delivery is best effort. Transient failures (network errors, 429, 5xx) are
retried with a linear backoff; anything else fails immediately.
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.core.structured import as_str_dict, get_bool, get_str
from cascade.services.broker.model import BrokerError, NotificationResult
from cascade.services.broker.templates import render_notification
from cascade.services.executor.model import ExecutionResult
from cascade.services.planner.model import WorkItem
from cascade.services.timeouts import (
    NOTIFY_MAX_RETRIES,
    NOTIFY_RETRY_DELAY_SECONDS,
    NOTIFY_TIMEOUT_SECONDS,
)

__all__ = [
    "HttpError",
    "HttpPoster",
    "MultiNotifier",
    "NoopNotifier",
    "Notifier",
    "SlackNotifier",
    "UrllibPoster",
    "WebhookNotifier",
]

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details; status 0 means the request never got a response."""

    url: str
    status: int
    message: str

    @property
    def transient(self) -> bool:
        return self.status == 0 or self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


class HttpPoster(Protocol):
    def post_json(
        self,
        url: str,
        payload: dict[str, object],
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[bytes, HttpError]: ...


class UrllibPoster:
    """JSON POST over urllib with system certificates."""

    def __init__(self, timeout: float = NOTIFY_TIMEOUT_SECONDS, user_agent: str = "cascade") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def post_json(
        self,
        url: str,
        payload: dict[str, object],
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[bytes, HttpError]:
        data = json.dumps(payload).encode("utf-8")
        all_headers = {
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": self.user_agent,
            **(headers or {}),
        }
        try:
            req = urllib.request.Request(url, data=data, headers=all_headers, method="POST")
            with urllib.request.urlopen(
                req,
                timeout=timeout or self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


class Notifier(Protocol):
    def send(
        self, item: WorkItem, result: ExecutionResult, *, ctx: RunContext
    ) -> Result[NotificationResult, BrokerError]: ...


def _post_with_retry(
    http: HttpPoster,
    *,
    url: str,
    channel: str,
    payload: dict[str, object],
    headers: dict[str, str] | None,
    ctx: RunContext,
    max_retries: int,
    retry_delay: float,
    timeout: float,
) -> Result[bytes, BrokerError]:
    last: HttpError | None = None
    for attempt in range(max_retries + 1):
        if attempt > 0 and not ctx.sleep(retry_delay * attempt):
            return Err(
                BrokerError(
                    kind="cancelled",
                    message=f"notification to {channel} cancelled after {attempt} attempts",
                )
            )

        result = http.post_json(url, payload, headers=headers, timeout=ctx.bounded(timeout))
        if isinstance(result, Ok):
            return result

        last = result.error
        if not last.transient:
            break

    return Err(
        BrokerError(
            kind="notification",
            message=f"notification to {channel} failed",
            hint=str(last) if last is not None else None,
        )
    )


@dataclass
class SlackNotifier:
    token: str
    channel: str
    http: HttpPoster
    max_retries: int = NOTIFY_MAX_RETRIES
    retry_delay: float = NOTIFY_RETRY_DELAY_SECONDS
    timeout: float = NOTIFY_TIMEOUT_SECONDS

    def send(
        self, item: WorkItem, result: ExecutionResult, *, ctx: RunContext
    ) -> Result[NotificationResult, BrokerError]:
        message = render_notification(item, result)
        posted = _post_with_retry(
            self.http,
            url=SLACK_POST_MESSAGE_URL,
            channel=self.channel,
            payload={"channel": self.channel, "text": message, "mrkdwn": True},
            headers={"Authorization": f"Bearer {self.token}"},
            ctx=ctx,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            timeout=self.timeout,
        )
        if isinstance(posted, Err):
            return posted

        # Slack answers 200 with {"ok": false} for API-level errors.
        try:
            body = as_str_dict(json.loads(posted.value.decode("utf-8") or "{}"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        if body is not None and get_bool(body, "ok") is False:
            return Err(
                BrokerError(
                    kind="notification",
                    message=f"slack rejected message for {self.channel}",
                    hint=get_str(body, "error"),
                )
            )
        return Ok(NotificationResult(channel=self.channel, message=message))


@dataclass
class WebhookNotifier:
    url: str
    http: HttpPoster
    max_retries: int = NOTIFY_MAX_RETRIES
    retry_delay: float = NOTIFY_RETRY_DELAY_SECONDS
    timeout: float = NOTIFY_TIMEOUT_SECONDS

    def send(
        self, item: WorkItem, result: ExecutionResult, *, ctx: RunContext
    ) -> Result[NotificationResult, BrokerError]:
        message = render_notification(item, result)
        payload: dict[str, object] = {
            "text": message,
            "module": item.source_module,
            "version": item.source_version,
            "repo": item.repo,
            "status": str(result.status),
        }
        posted = _post_with_retry(
            self.http,
            url=self.url,
            channel=self.url,
            payload=payload,
            headers=None,
            ctx=ctx,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            timeout=self.timeout,
        )
        if isinstance(posted, Err):
            return posted
        return Ok(NotificationResult(channel=self.url, message=message))


@dataclass
class MultiNotifier:
    """Sends through every notifier; fails only when all of them fail."""

    notifiers: list[Notifier]

    def send(
        self, item: WorkItem, result: ExecutionResult, *, ctx: RunContext
    ) -> Result[NotificationResult, BrokerError]:
        first: NotificationResult | None = None
        errors: list[str] = []
        for notifier in self.notifiers:
            sent = notifier.send(item, result, ctx=ctx)
            match sent:
                case Ok(value):
                    first = first or value
                case Err(error):
                    errors.append(error.pretty())

        if first is not None:
            return Ok(first)
        return Err(
            BrokerError(
                kind="notification",
                message="all notifiers failed",
                hint="; ".join(errors) or None,
            )
        )


class NoopNotifier:
    """Used when no notification target is configured."""

    def send(
        self, item: WorkItem, result: ExecutionResult, *, ctx: RunContext
    ) -> Result[NotificationResult, BrokerError]:
        del item, result, ctx
        return Ok(NotificationResult(channel="noop", message="Notification skipped (no integrations configured)"))
