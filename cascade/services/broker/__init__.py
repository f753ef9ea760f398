"""Pull requests, comments and notifications."""

from .broker import Broker, BrokerSettings
from .github import GhPullRequestProvider, PullRequestProvider
from .model import BrokerError, NotificationResult, PRInput, PullRequest
from .notify import (
    HttpError,
    HttpPoster,
    MultiNotifier,
    NoopNotifier,
    Notifier,
    SlackNotifier,
    UrllibPoster,
    WebhookNotifier,
)

__all__ = [
    "Broker",
    "BrokerError",
    "BrokerSettings",
    "GhPullRequestProvider",
    "HttpError",
    "HttpPoster",
    "MultiNotifier",
    "NoopNotifier",
    "NotificationResult",
    "Notifier",
    "PRInput",
    "PullRequest",
    "PullRequestProvider",
    "SlackNotifier",
    "UrllibPoster",
    "WebhookNotifier",
]
