from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Command:
    """One verification command: argv plus a directory relative to the module."""

    cmd: tuple[str, ...]
    dir: str = ""

    def display(self) -> str:
        return " ".join(self.cmd)


@dataclass(frozen=True, slots=True)
class Notifications:
    """Notification targets; ``None`` toggles inherit from the level above."""

    slack_channel: str | None = None
    webhook: str | None = None
    on_success: bool | None = None
    on_failure: bool | None = None

    def merged_over(self, base: Notifications) -> Notifications:
        return Notifications(
            slack_channel=self.slack_channel or base.slack_channel,
            webhook=self.webhook or base.webhook,
            on_success=base.on_success if self.on_success is None else self.on_success,
            on_failure=base.on_failure if self.on_failure is None else self.on_failure,
        )


@dataclass(frozen=True, slots=True)
class PRConfig:
    title: str | None = None
    body_template: str | None = None
    reviewers: tuple[str, ...] = ()
    team_reviewers: tuple[str, ...] = ()

    def merged_over(self, base: PRConfig) -> PRConfig:
        return PRConfig(
            title=self.title or base.title,
            body_template=self.body_template or base.body_template,
            reviewers=self.reviewers or base.reviewers,
            team_reviewers=self.team_reviewers or base.team_reviewers,
        )


@dataclass(frozen=True, slots=True)
class Dependent:
    """A repository that consumes a released module."""

    repo: str
    module: str
    module_path: str = "."
    clone_url: str | None = None
    branch: str | None = None
    tests: tuple[Command, ...] = ()
    extra_commands: tuple[Command, ...] = ()
    labels: tuple[str, ...] = ()
    notifications: Notifications = field(default_factory=Notifications)
    pr: PRConfig = field(default_factory=PRConfig)
    skip: bool = False
    env: dict[str, str] = field(default_factory=dict[str, str])
    timeout: float | None = None

    @property
    def resolved_clone_url(self) -> str:
        if self.clone_url:
            return self.clone_url
        return f"https://github.com/{self.repo}.git"


@dataclass(frozen=True, slots=True)
class Module:
    """A releasable module and the repositories that depend on it."""

    name: str
    module: str
    repo: str | None = None
    dependents: tuple[Dependent, ...] = ()


@dataclass(frozen=True, slots=True)
class Defaults:
    branch: str = "main"
    tests: tuple[Command, ...] = ()
    extra_commands: tuple[Command, ...] = ()
    labels: tuple[str, ...] = ()
    commit_template: str | None = None
    notifications: Notifications = field(default_factory=Notifications)
    pr: PRConfig = field(default_factory=PRConfig)


@dataclass(frozen=True, slots=True)
class Manifest:
    manifest_version: int = 1
    defaults: Defaults = field(default_factory=Defaults)
    modules: tuple[Module, ...] = ()

    def find_module(self, module: str) -> Module | None:
        """Look a module up by its module path, falling back to its short name."""
        for m in self.modules:
            if m.module == module:
                return m
        for m in self.modules:
            if m.name == module:
                return m
        return None
