"""Subprocess execution with Result-based error handling.

Every external tool cascade drives (``git``, ``go``, ``gh`` and the
user-configured test commands) goes through ``run`` so that timeouts and
missing binaries surface as ``ProcessError`` values instead of exceptions.

Usage:
    match run(["go", "mod", "tidy"], cwd=worktree, timeout=300):
        case Ok(stdout):
            ...
        case Err(error):
            print(error.excerpt())
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from cascade.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

_EXCERPT_CHARS = 2000


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code; -1 when the process timed out or never started.
        stdout: Standard output (may be empty).
        stderr: Standard error.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def timed_out(self) -> bool:
        return self.returncode == -1 and "timed out" in self.stderr

    def excerpt(self, limit: int = _EXCERPT_CHARS) -> str:
        """Tail of the combined output, for failure reasons."""
        text = "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)
        if len(text) > limit:
            return "..." + text[-limit:]
        return text

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Full environment (inherits the current one if None).
        timeout: Maximum seconds to wait (None for no limit).
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=stdout,
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)
