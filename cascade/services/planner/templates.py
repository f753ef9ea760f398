"""Branch names and commit messages for work items."""

from __future__ import annotations

import re

__all__ = ["DEFAULT_COMMIT_TEMPLATE", "branch_name", "commit_message", "render_placeholders"]

DEFAULT_COMMIT_TEMPLATE = "Update {{ module }} to {{ version }}"
BRANCH_PREFIX = "auto"

_UNSAFE_BRANCH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def render_placeholders(template: str, values: dict[str, str]) -> str:
    """Replace ``{{ key }}`` placeholders; unknown placeholders are left as-is."""
    out = template
    for key, value in values.items():
        out = out.replace("{{ " + key + " }}", value).replace("{{" + key + "}}", value)
    return out


def _sanitize(part: str) -> str:
    cleaned = _UNSAFE_BRANCH_CHARS.sub("-", part).strip("-.")
    return cleaned or "x"


def branch_name(module: str, version: str) -> str:
    """``auto/<last module segment>-<version>``, safe for git refs."""
    segment = module.rstrip("/").rsplit("/", 1)[-1]
    return f"{BRANCH_PREFIX}/{_sanitize(segment)}-{_sanitize(version)}"


def commit_message(template: str | None, module: str, version: str) -> str:
    return render_placeholders(template or DEFAULT_COMMIT_TEMPLATE, {"module": module, "version": version})
