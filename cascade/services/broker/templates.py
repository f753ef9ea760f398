"""Pull request and notification text."""

from __future__ import annotations

import re
from datetime import UTC, datetime

from cascade.services.executor.model import ExecutionResult, ItemStatus
from cascade.services.planner.model import WorkItem
from cascade.services.planner.templates import render_placeholders

__all__ = [
    "DEFAULT_BODY_TEMPLATE",
    "DEFAULT_TITLE_TEMPLATE",
    "render_body",
    "render_notification",
    "render_title",
    "sanitize_labels",
]

DEFAULT_TITLE_TEMPLATE = "chore(deps): update {{ module }} to {{ version }}"

DEFAULT_BODY_TEMPLATE = """\
This pull request updates `{{ module }}` to `{{ version }}` in `{{ repo }}`.

- Branch: `{{ branch }}`
- Commit: `{{ commit }}`

{{ details }}

_Opened automatically by cascade._
"""

_MAX_LABEL_LEN = 50
_LABEL_UNSAFE = re.compile(r"[^\w .:/-]+")


def _values(item: WorkItem, result: ExecutionResult | None) -> dict[str, str]:
    return {
        "module": item.source_module,
        "version": item.source_version,
        "repo": item.repo,
        "branch": item.branch_name,
        "base": item.branch,
        "commit": (result.commit_hash or "")[:8] if result else "",
        "status": str(result.status) if result else "",
        "details": result.reason if result else "",
    }


def render_title(template: str | None, item: WorkItem) -> str:
    return render_placeholders(template or DEFAULT_TITLE_TEMPLATE, _values(item, None)).strip()


def render_body(template: str | None, item: WorkItem, result: ExecutionResult | None) -> str:
    return render_placeholders(template or DEFAULT_BODY_TEMPLATE, _values(item, result))


def render_notification(
    item: WorkItem,
    result: ExecutionResult,
    *,
    now: datetime | None = None,
) -> str:
    icon = {ItemStatus.COMPLETED: "[ok]", ItemStatus.FAILED: "[failed]"}.get(result.status, "[info]")
    lines = [
        f"{icon} *{item.source_module}* update *{result.status}*",
        "",
        f"*Repository:* {item.repo}",
        f"*Branch:* {item.branch_name}",
    ]
    if result.commit_hash:
        lines.append(f"*Commit:* {result.commit_hash[:8]}")
    if result.reason:
        reason = result.reason if len(result.reason) <= 200 else result.reason[:197] + "..."
        lines.append(f"*Details:* {reason}")
    stamp = (now or datetime.now(UTC)).strftime("%H:%M:%S UTC")
    lines.extend(["", f"Generated at {stamp}"])
    return "\n".join(lines)


def sanitize_labels(labels: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Drop empty/duplicate labels and strip characters the API rejects."""
    out: dict[str, None] = {}
    for label in labels:
        cleaned = _LABEL_UNSAFE.sub("", label).strip()[:_MAX_LABEL_LEN]
        if cleaned:
            out.setdefault(cleaned, None)
    return tuple(out)
