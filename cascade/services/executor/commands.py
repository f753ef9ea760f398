"""Command execution for one work item, with per-command logs."""

from __future__ import annotations

import time
from pathlib import Path

from cascade.core.context import RunContext
from cascade.core.result import Err, Ok, Result
from cascade.platform.process import ProcessError
from cascade.platform.process import run as run_process
from cascade.services.executor.model import CommandLog

__all__ = ["StepRunner"]

_LOG_OUTPUT_CHARS = 4000


def _tail(text: str, limit: int = _LOG_OUTPUT_CHARS) -> str:
    text = text.strip()
    if len(text) > limit:
        return "..." + text[-limit:]
    return text


class StepRunner:
    """Runs commands under the run context and records a CommandLog for each.

    ``logs`` keeps every command in order, including git and go tooling, so a
    failed item's state shows exactly what ran.
    """

    def __init__(self, *, ctx: RunContext, env: dict[str, str] | None, timeout: float) -> None:
        self._ctx = ctx
        self._env = env
        self._timeout = timeout
        self.logs: list[CommandLog] = []

    @property
    def cancelled(self) -> bool:
        return self._ctx.cancelled

    def run(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        timeout: float | None = None,
        label: str | None = None,
    ) -> Result[str, ProcessError]:
        if self._ctx.cancelled:
            return Err(
                ProcessError(
                    command=tuple(cmd),
                    returncode=-1,
                    stdout="",
                    stderr=f"cancelled: {self._ctx.reason}",
                )
            )

        started = time.monotonic()
        result = run_process(
            cmd,
            cwd=cwd,
            env=self._env,
            timeout=self._ctx.bounded(timeout or self._timeout),
        )
        duration = time.monotonic() - started

        match result:
            case Ok(stdout):
                exit_code, output = 0, _tail(stdout)
            case Err(error):
                exit_code, output = error.returncode, _tail(error.excerpt())

        self.logs.append(
            CommandLog(
                command=label or " ".join(cmd),
                dir=str(cwd),
                exit_code=exit_code,
                output=output,
                duration=duration,
            )
        )
        return result
