"""Cancellation and deadline propagation for a run.

A ``RunContext`` is created once per CLI invocation and handed to every
blocking call (checks, commands, PR and notification requests). Cancelling
it stops new work from being dispatched; work already running is bounded by
``remaining()``.

Usage:
    ctx = RunContext()
    check_ctx = ctx.with_timeout(30.0)
    result = run_process(cmd, cwd=repo, timeout=check_ctx.remaining())
"""

from __future__ import annotations

import threading
import time

__all__ = ["RunContext"]


class RunContext:
    def __init__(self, *, deadline: float | None = None, parent: RunContext | None = None) -> None:
        self._event = threading.Event()
        self._deadline = deadline
        self._parent = parent
        self._reason: str | None = None

    def with_timeout(self, seconds: float | None) -> RunContext:
        """Child context that expires after ``seconds`` (or with its parent)."""
        deadline = None if seconds is None or seconds <= 0 else time.monotonic() + seconds
        if self._deadline is not None and (deadline is None or self._deadline < deadline):
            deadline = self._deadline
        return RunContext(deadline=deadline, parent=self)

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> str | None:
        """Why the context is done, or None while it is still live."""
        if self._event.is_set():
            return self._reason
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return "deadline exceeded"
        if self._parent is not None:
            return self._parent.reason
        return None

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def bounded(self, timeout: float | None) -> float | None:
        """Clamp a per-operation timeout to the context deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        if timeout is None:
            return remaining
        return min(timeout, remaining)

    def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return False if cancelled meanwhile."""
        end = time.monotonic() + max(0.0, seconds)
        while not self.cancelled:
            left = end - time.monotonic()
            if left <= 0:
                return True
            self._event.wait(min(left, 0.1))
        return False
