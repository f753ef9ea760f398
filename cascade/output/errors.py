"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cascade.core.config import ConfigError
from cascade.core.errors import ErrorCode
from cascade.manifest.loader import ManifestError
from cascade.output.console import Style
from cascade.services.planner.model import PlanningError
from cascade.services.state.model import StateError

if TYPE_CHECKING:
    from cascade.output.console import ConsoleProtocol

__all__ = ["RunError", "error_exit_code", "print_error"]

type RunError = ConfigError | ManifestError | PlanningError | StateError


def print_error(error: RunError, console: ConsoleProtocol) -> None:
    """Print a fatal error as one actionable message."""
    match error:
        case ConfigError(message=message, path=path):
            console.error(message)
            if path is not None:
                console.print(f"config: {path}", Style.DIM)
        case ManifestError(message=message, path=path, hint=hint):
            console.error(f"manifest: {message}")
            if path is not None:
                console.print(f"path: {path}", Style.DIM)
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case PlanningError(message=message, hint=hint):
            console.error(message)
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case StateError(kind="not_found", message=message):
            console.error(message)
            console.print("hint: run `cascade release` first; resume only continues a recorded run", Style.DIM)
        case StateError(message=message, hint=hint):
            console.error(f"state: {message}")
            if hint:
                console.print(f"path: {hint}", Style.DIM)


def error_exit_code(error: RunError) -> int:
    """Get exit code for a fatal error."""
    match error:
        case ConfigError():
            return int(ErrorCode.USER_ERROR)
        case ManifestError(kind="not_found" | "unreadable"):
            return int(ErrorCode.IO_ERROR)
        case ManifestError():
            return int(ErrorCode.USER_ERROR)
        case PlanningError(kind="invalid_target" | "module_not_found"):
            return int(ErrorCode.USER_ERROR)
        case PlanningError():
            return int(ErrorCode.PLANNING_ERROR)
        case StateError(kind="not_found" | "invalid"):
            return int(ErrorCode.USER_ERROR)
        case StateError(kind="io"):
            return int(ErrorCode.IO_ERROR)
        case StateError():
            return int(ErrorCode.STATE_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.PLANNING_ERROR)
