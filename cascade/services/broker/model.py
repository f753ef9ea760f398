from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

__all__ = ["BrokerError", "NotificationResult", "PRInput", "PullRequest"]


@dataclass(frozen=True, slots=True)
class PullRequest:
    """A review request; ``head_branch`` identifies it for idempotent lookup."""

    repo: str
    url: str
    number: int
    head_branch: str
    labels: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PRInput:
    repo: str
    base_branch: str
    head_branch: str
    title: str
    body: str
    labels: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class NotificationResult:
    channel: str
    message: str


@dataclass(frozen=True, slots=True)
class BrokerError:
    kind: Literal["invalid_input", "provider", "notification", "cancelled"]
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message}: {self.hint}"
        return self.message
