from __future__ import annotations

import base64
import json
import time
from pathlib import Path

import pytest

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok
from cascade.platform.process import ProcessError
from cascade.services import gh as gh_mod
from cascade.test.fakes import no_sleep_context


def _err(*, stderr: str, returncode: int = 1) -> Err[ProcessError]:
    return Err(
        ProcessError(
            command=("gh", "api", "repos/acme/api"),
            returncode=returncode,
            stdout="",
            stderr=stderr,
        )
    )


def test_gh_api_json_retries_transient_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []
    responses = [
        _err(stderr="HTTP 503 Service Unavailable"),
        Ok('{"ok": true}'),
    ]

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return responses.pop(0)

    monkeypatch.setattr(gh_mod, "run_process", fake_run)

    result = gh_mod.gh_api_json(cwd=tmp_path, ctx=no_sleep_context(), endpoint="repos/acme/api")
    assert isinstance(result, Ok)
    assert result.value == {"ok": True}
    assert len(calls) == 2


def test_gh_api_json_does_not_retry_not_found(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return _err(stderr="HTTP 404 Not Found")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)

    result = gh_mod.gh_api_json(cwd=tmp_path, ctx=RunContext(), endpoint="repos/acme/api")
    assert isinstance(result, Err)
    assert result.error.kind == "not_found"
    assert len(calls) == 1


def test_gh_api_json_gives_up_after_retry_budget(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return _err(stderr="HTTP 502 Bad Gateway")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)

    result = gh_mod.gh_api_json(cwd=tmp_path, ctx=no_sleep_context(), endpoint="repos/acme/api")
    assert isinstance(result, Err)
    assert result.error.kind == "request_failed"
    assert len(calls) == gh_mod.GH_READ_RETRY_ATTEMPTS


def test_gh_api_json_invalid_json(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cmd, cwd, timeout
        return Ok("<html>")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)

    result = gh_mod.gh_api_json(cwd=tmp_path, ctx=RunContext(), endpoint="repos/acme/api")
    assert isinstance(result, Err)
    assert result.error.kind == "invalid_response"


def test_run_gh_cancelled_context_skips_process(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        raise AssertionError("process must not run")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)
    ctx = RunContext()
    ctx.cancel("interrupted")

    result = gh_mod.run_gh(["gh", "pr", "list"], cwd=tmp_path, ctx=ctx, message="pr list")
    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert result.error.hint == "interrupted"


def test_retry_wait_respects_deadline(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        calls.append(cmd)
        return _err(stderr="HTTP 503 Service Unavailable")

    monkeypatch.setattr(gh_mod, "run_process", fake_run)
    ctx = RunContext().with_timeout(0.1)

    started = time.monotonic()
    result = gh_mod.gh_api_json(cwd=tmp_path, ctx=ctx, endpoint="repos/acme/api")
    elapsed = time.monotonic() - started

    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert result.error.hint == "deadline exceeded"
    assert len(calls) == 1
    assert elapsed < gh_mod.GH_READ_RETRY_DELAY_SECONDS


def test_get_repo_file_text_decodes_base64(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: list[list[str]] = []
    body = "module github.com/acme/api\n"
    payload = {"encoding": "base64", "content": base64.b64encode(body.encode()).decode()}

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd, timeout
        seen.append(cmd)
        return Ok(json.dumps(payload))

    monkeypatch.setattr(gh_mod, "run_process", fake_run)

    result = gh_mod.get_repo_file_text(
        cwd=tmp_path, ctx=RunContext(), repo="acme/api", path="go.mod", ref="main"
    )
    assert result == Ok(body)
    assert seen == [["gh", "api", "repos/acme/api/contents/go.mod?ref=main"]]


def test_get_repo_file_text_rejects_unknown_encoding(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cmd, cwd, timeout
        return Ok(json.dumps({"encoding": "none", "content": ""}))

    monkeypatch.setattr(gh_mod, "run_process", fake_run)

    result = gh_mod.get_repo_file_text(
        cwd=tmp_path, ctx=RunContext(), repo="acme/api", path="go.mod", ref="main"
    )
    assert isinstance(result, Err)
    assert result.error.kind == "invalid_response"


def test_ensure_gh_available(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gh_mod, "is_gh_available", lambda: False)
    result = gh_mod.ensure_gh_available()
    assert isinstance(result, Err)
    assert result.error.kind == "gh_missing"
