"""Thin wrappers around the GitHub CLI (``gh``).

Reads (contents, PR lookups) retry on transient network failures; writes
(create, comment, edit) run once and leave retries to the caller.
"""

from __future__ import annotations

import base64
import binascii
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.core.structured import as_str_dict, get_str
from cascade.platform.process import ProcessError
from cascade.platform.process import run as run_process
from cascade.services.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

__all__ = [
    "GhError",
    "ensure_gh_available",
    "get_repo_file_text",
    "gh_api_json",
    "is_gh_available",
    "run_gh",
]

GhErrorKind = Literal[
    "gh_missing",
    "not_found",
    "request_failed",
    "invalid_response",
    "cancelled",
]


@dataclass(frozen=True, slots=True)
class GhError:
    kind: GhErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message}: {self.hint}"
        return self.message


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "http 404" in text or "not found" in text


def is_gh_available() -> bool:
    return shutil.which("gh") is not None


def ensure_gh_available() -> Result[None, GhError]:
    if not is_gh_available():
        return Err(
            GhError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def run_gh(
    cmd: list[str],
    *,
    cwd: Path,
    ctx: RunContext,
    message: str,
    retry_attempts: int = 1,
    timeout: float = GH_TIMEOUT_SECONDS,
) -> Result[str, GhError]:
    """Run a gh command, retrying transient failures up to ``retry_attempts`` times."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        if ctx.cancelled:
            return Err(GhError(kind="cancelled", message=message, hint=ctx.reason))

        result = run_process(cmd, cwd=cwd, timeout=ctx.bounded(timeout))
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            # The wait counts against the caller's deadline.
            if not ctx.sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1)):
                return Err(GhError(kind="cancelled", message=message, hint=ctx.reason))
            continue

        kind: GhErrorKind = "not_found" if _is_not_found(error) else "request_failed"
        return Err(GhError(kind=kind, message=message, hint=error.stderr.strip() or None))

    return Err(GhError(kind="request_failed", message=message))


def gh_api_json(*, cwd: Path, ctx: RunContext, endpoint: str) -> Result[object, GhError]:
    result = run_gh(
        ["gh", "api", endpoint],
        cwd=cwd,
        ctx=ctx,
        message=f"gh api failed: {endpoint}",
        retry_attempts=GH_READ_RETRY_ATTEMPTS,
    )
    if isinstance(result, Err):
        return result

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(
            GhError(
                kind="invalid_response",
                message=f"gh api returned invalid JSON: {e}",
                hint=endpoint,
            )
        )
    return Ok(obj)


def get_repo_file_text(
    *,
    cwd: Path,
    ctx: RunContext,
    repo: str,
    path: str,
    ref: str,
) -> Result[str, GhError]:
    # Contents API avoids needing a local checkout.
    endpoint = f"repos/{repo}/contents/{path}?ref={ref}"
    obj = gh_api_json(cwd=cwd, ctx=ctx, endpoint=endpoint)
    if isinstance(obj, Err):
        return obj

    data = as_str_dict(obj.value)
    if data is None:
        return Err(
            GhError(
                kind="invalid_response",
                message=f"unexpected contents payload: {repo}/{path}",
                hint=endpoint,
            )
        )

    enc = get_str(data, "encoding")
    content = get_str(data, "content")
    if enc != "base64" or content is None:
        return Err(
            GhError(
                kind="invalid_response",
                message=f"unexpected contents encoding for {repo}/{path}",
                hint=endpoint,
            )
        )

    try:
        raw = base64.b64decode(content, validate=False)
        return Ok(raw.decode("utf-8"))
    except (binascii.Error, ValueError) as e:
        return Err(
            GhError(
                kind="invalid_response",
                message=f"failed to decode contents: {e}",
                hint=endpoint,
            )
        )
