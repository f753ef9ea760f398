"""Exit codes for the cascade CLI.

Each value is the process exit status for one class of failure and must stay
stable; CI pipelines branch on them.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: Validation error (bad target, bad flags, invalid manifest content)
    - 2: I/O error (manifest or config unreadable)
    - 3: Planning error (checker/planner internal failure)
    - 4: Execution error (one or more work items failed)
    - 5: Network error (hosting provider unreachable)
    - 6: State error (persisted state corrupt or locked)
    """

    OK = 0
    USER_ERROR = 1
    IO_ERROR = 2
    PLANNING_ERROR = 3
    EXECUTION_ERROR = 4
    NETWORK_ERROR = 5
    STATE_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
