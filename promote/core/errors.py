"""Exit codes for the promote CLI.

A promotion run ends with one process exit status so that the surrounding
workflow (and any recovery tooling) can branch on it without parsing output.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success (promoted, skipped, or nothing to do)
    - 1: User error (bad tag, bad arguments, bad config)
    - 2: Environment error (gh missing, not authenticated)
    - 3: Promotion failed with no external state written
    - 4: Network or release host error
    - 5: I/O error (staging area, local files)
    - 6: Promotion failed after some assets were attached (partial publish)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    PROMOTION_FAILED = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    PARTIAL_PUBLISH = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
