"""Process exit codes.

The publish command is driven by scripts and CI jobs, so these values are
part of its external contract and must stay stable:
- 0: Success (including "nothing to publish")
- 1: User error (bad flags, invalid version spec, bad config)
- 2: Precondition failed (dirty tree, wrong branch, missing env vars)
- 3: Conflict (merge conflicts, tag conflicts, duplicate version)
- 4: Network/remote error (git transport, gh API, registry)
- 5: I/O error (manifest unreadable, lock not acquired)
- 6: Publish error (checks failed or timed out, release creation failed)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    PRECONDITION_ERROR = 2
    CONFLICT_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    PUBLISH_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
