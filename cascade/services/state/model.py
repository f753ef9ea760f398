from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from cascade.core.structured import as_obj_list, as_str_dict, get_int, get_str
from cascade.services.executor.model import CommandLog, ItemStatus

__all__ = [
    "ItemState",
    "RunStatus",
    "STATE_SCHEMA",
    "StateError",
    "Summary",
    "format_time",
    "parse_time",
]

STATE_SCHEMA = 1

RunStatus = Literal["running", "completed", "failed", "cancelled"]
_RUN_STATUSES: tuple[RunStatus, ...] = ("running", "completed", "failed", "cancelled")


@dataclass(frozen=True, slots=True)
class StateError:
    kind: Literal["not_found", "corrupt", "invalid", "io"]
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message


def format_time(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _status(value: str | None) -> ItemStatus | None:
    try:
        return ItemStatus(value) if value is not None else None
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class ItemState:
    """Last known progress of one repository for one module version."""

    repo: str
    branch: str
    status: ItemStatus
    last_updated: datetime
    reason: str = ""
    commit_hash: str | None = None
    pr_url: str | None = None
    attempts: int = 0
    command_logs: tuple[CommandLog, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "schema": STATE_SCHEMA,
            "repo": self.repo,
            "branch": self.branch,
            "status": self.status.value,
            "reason": self.reason,
            "commit_hash": self.commit_hash,
            "pr_url": self.pr_url,
            "last_updated": format_time(self.last_updated),
            "attempts": self.attempts,
            "command_logs": [log.to_dict() for log in self.command_logs],
        }

    @classmethod
    def from_dict(cls, data: object) -> ItemState | None:
        """Parse a persisted record; None when it is malformed."""
        table = as_str_dict(data)
        if table is None:
            return None
        repo = get_str(table, "repo")
        status = _status(get_str(table, "status"))
        last_updated = parse_time(get_str(table, "last_updated"))
        if repo is None or status is None or last_updated is None:
            return None

        logs: list[CommandLog] = []
        for raw in as_obj_list(table.get("command_logs")) or []:
            entry = as_str_dict(raw)
            if entry is None:
                return None
            duration = entry.get("duration")
            logs.append(
                CommandLog(
                    command=get_str(entry, "command") or "",
                    dir=get_str(entry, "dir") or "",
                    exit_code=get_int(entry, "exit_code") or 0,
                    output=str(entry.get("output") or ""),
                    duration=float(duration) if isinstance(duration, (int, float)) else 0.0,
                )
            )

        return cls(
            repo=repo,
            branch=get_str(table, "branch") or "",
            status=status,
            last_updated=last_updated,
            reason=str(table.get("reason") or ""),
            commit_hash=get_str(table, "commit_hash"),
            pr_url=get_str(table, "pr_url"),
            attempts=get_int(table, "attempts") or 0,
            command_logs=tuple(logs),
        )


@dataclass(frozen=True, slots=True)
class Summary:
    """Run-level record for one module version; ``items`` lists repos in plan order."""

    module: str
    version: str
    start_time: datetime
    status: RunStatus = "running"
    end_time: datetime | None = None
    items: tuple[str, ...] = field(default_factory=tuple)
    skipped_up_to_date: int = 0
    retry_count: int = 0

    @property
    def state_id(self) -> str:
        return f"{self.module}@{self.version}"

    def to_dict(self) -> dict[str, object]:
        return {
            "schema": STATE_SCHEMA,
            "module": self.module,
            "version": self.version,
            "status": self.status,
            "start_time": format_time(self.start_time),
            "end_time": format_time(self.end_time) if self.end_time else None,
            "items": list(self.items),
            "skipped_up_to_date": self.skipped_up_to_date,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: object) -> Summary | None:
        table = as_str_dict(data)
        if table is None:
            return None
        module = get_str(table, "module")
        version = get_str(table, "version")
        start_time = parse_time(get_str(table, "start_time"))
        status = get_str(table, "status") or "running"
        raw_items = as_obj_list(table.get("items"))
        if module is None or version is None or start_time is None or raw_items is None:
            return None
        if status not in _RUN_STATUSES:
            return None
        items = [i for i in raw_items if isinstance(i, str)]
        if len(items) != len(raw_items):
            return None

        run_status: RunStatus = "running"
        for candidate in _RUN_STATUSES:
            if candidate == status:
                run_status = candidate

        return cls(
            module=module,
            version=version,
            start_time=start_time,
            status=run_status,
            end_time=parse_time(get_str(table, "end_time")),
            items=tuple(items),
            skipped_up_to_date=get_int(table, "skipped_up_to_date") or 0,
            retry_count=get_int(table, "retry_count") or 0,
        )
