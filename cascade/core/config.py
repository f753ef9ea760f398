"""Typed configuration loading and access.

``cascade.toml`` maps onto frozen dataclasses. Every section is optional;
missing values fall back to the defaults below. Precedence, lowest first:
defaults, config file, ``CASCADE_*`` environment variables, CLI flags.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

from .durations import parse_duration
from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_str, get_str_list, get_table

__all__ = [
    "BrokerConfig",
    "CheckStrategyName",
    "ChecksConfig",
    "Config",
    "ConfigError",
    "ExecutorConfig",
    "NotificationsConfig",
    "StateConfig",
    "apply_env",
    "load_config",
    "load_config_or_default",
    "parse_strategy",
    "DEFAULT_CACHE_TTL_SECONDS",
    "DEFAULT_CHECK_TIMEOUT_SECONDS",
    "DEFAULT_COMMAND_TIMEOUT_SECONDS",
    "DEFAULT_LABEL",
]

CheckStrategyName = Literal["local", "remote", "auto"]

DEFAULT_CACHE_TTL_SECONDS = 5 * 60.0
DEFAULT_CHECK_TIMEOUT_SECONDS = 30.0
DEFAULT_COMMAND_TIMEOUT_SECONDS = 5 * 60.0
DEFAULT_STATE_DIR = ".cascade/state"
DEFAULT_LABEL = "automation:cascade"

CONFIG_FILENAME = "cascade.toml"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


def parse_strategy(value: str | None) -> CheckStrategyName | None:
    match (value or "").strip().lower():
        case "local":
            return "local"
        case "remote":
            return "remote"
        case "auto":
            return "auto"
        case _:
            return None


@dataclass(frozen=True, slots=True)
class ChecksConfig:
    """Dependency check settings for the planner."""

    strategy: CheckStrategyName = "auto"
    cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS
    parallel: int = 0  # 0 = one worker per CPU
    timeout: float = DEFAULT_CHECK_TIMEOUT_SECONDS
    skip_up_to_date: bool = True
    force_all: bool = False


@dataclass(frozen=True, slots=True)
class ExecutorConfig:
    workspace: str | None = None
    dry_run: bool = False
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class StateConfig:
    dir: str = DEFAULT_STATE_DIR


@dataclass(frozen=True, slots=True)
class BrokerConfig:
    """Pull request metadata defaults."""

    default_labels: tuple[str, ...] = (DEFAULT_LABEL,)
    title_template: str | None = None
    body_template: str | None = None


@dataclass(frozen=True, slots=True)
class NotificationsConfig:
    """Notification targets.

    The Slack token is usually supplied through ``CASCADE_SLACK_TOKEN``
    rather than written into the config file.
    """

    slack_token: str | None = None
    slack_channel: str | None = None
    webhook: str | None = None
    on_success: bool = True
    on_failure: bool = True


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    checks: ChecksConfig = field(default_factory=ChecksConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    state: StateConfig = field(default_factory=StateConfig)
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: a value has the right type but an invalid content.
        """
        checks: StrDict = get_table(data, "checks") or {}
        executor: StrDict = get_table(data, "executor") or {}
        state: StrDict = get_table(data, "state") or {}
        broker: StrDict = get_table(data, "broker") or {}
        notifications: StrDict = get_table(data, "notifications") or {}

        strategy_raw = get_str(checks, "strategy")
        strategy = parse_strategy(strategy_raw) if strategy_raw else "auto"
        if strategy is None:
            raise ValueError(f"checks.strategy must be local, remote or auto (got {strategy_raw!r})")

        parallel = get_int(checks, "parallel") or 0
        if parallel < 0:
            raise ValueError("checks.parallel must be >= 0")

        labels = get_str_list(broker, "default_labels")

        return cls(
            checks=ChecksConfig(
                strategy=strategy,
                cache_ttl=_duration(checks, "cache_ttl", DEFAULT_CACHE_TTL_SECONDS),
                parallel=parallel,
                timeout=_duration(checks, "timeout", DEFAULT_CHECK_TIMEOUT_SECONDS),
                skip_up_to_date=_bool(checks, "skip_up_to_date", True),
                force_all=_bool(checks, "force_all", False),
            ),
            executor=ExecutorConfig(
                workspace=get_str(executor, "workspace"),
                dry_run=_bool(executor, "dry_run", False),
                command_timeout=_duration(
                    executor, "command_timeout", DEFAULT_COMMAND_TIMEOUT_SECONDS
                ),
            ),
            state=StateConfig(dir=get_str(state, "dir") or DEFAULT_STATE_DIR),
            broker=BrokerConfig(
                default_labels=tuple(labels) if labels else (DEFAULT_LABEL,),
                title_template=get_str(broker, "title"),
                body_template=get_str(broker, "body"),
            ),
            notifications=NotificationsConfig(
                slack_token=get_str(notifications, "slack_token"),
                slack_channel=get_str(notifications, "slack_channel"),
                webhook=get_str(notifications, "webhook"),
                on_success=_bool(notifications, "on_success", True),
                on_failure=_bool(notifications, "on_failure", True),
            ),
        )


def _bool(table: Mapping[str, object], key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _duration(table: Mapping[str, object], key: str, default: float) -> float:
    if key not in table:
        return default
    seconds = parse_duration(table[key])
    if seconds is None:
        raise ValueError(f"{key} is not a valid duration: {table[key]!r}")
    return seconds


def apply_env(config: Config, environ: Mapping[str, str]) -> Config:
    """Overlay ``CASCADE_*`` environment variables onto a config."""
    checks = config.checks
    strategy = parse_strategy(environ.get("CASCADE_CHECK_STRATEGY"))
    if strategy is not None:
        checks = replace(checks, strategy=strategy)

    executor = config.executor
    workspace = environ.get("CASCADE_WORKSPACE", "").strip()
    if workspace:
        executor = replace(executor, workspace=workspace)

    state = config.state
    state_dir = environ.get("CASCADE_STATE_DIR", "").strip()
    if state_dir:
        state = replace(state, dir=state_dir)

    notifications = config.notifications
    token = environ.get("CASCADE_SLACK_TOKEN", "").strip()
    if token:
        notifications = replace(notifications, slack_token=token)

    return replace(
        config,
        checks=checks,
        executor=executor,
        state=state,
        notifications=notifications,
    )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Config:
    """Load config from file, or return the default config if it is missing."""
    if not path.exists():
        return Config()
    result = load_config(path)
    if isinstance(result, Ok):
        return result.value
    return Config()
