"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pubflow.core.errors import ErrorCode
from pubflow.output.console import Style
from pubflow.publish.errors import PublishError

if TYPE_CHECKING:
    from pubflow.output.console import ConsoleProtocol

__all__ = ["print_publish_error", "publish_error_exit_code"]


def print_publish_error(error: PublishError, console: ConsoleProtocol) -> None:
    """Print a fatal publish error: message, failed step, hint, remediation."""
    step = f" [step: {error.step}]" if error.step else ""
    console.error(f"{error.message}{step}")
    if error.hint:
        for line in error.hint.splitlines():
            console.print(f"hint: {line}", Style.DIM)
    if error.remediation:
        console.print("to fix, then re-run:", Style.DIM)
        for command in error.remediation:
            console.print(f"  {command}", Style.DIM)


def publish_error_exit_code(error: PublishError) -> int:
    """Get exit code for a publish error."""
    match error.kind:
        case "invalid_version_spec" | "invalid_input":
            return int(ErrorCode.USER_ERROR)
        case "precondition_failed":
            return int(ErrorCode.PRECONDITION_ERROR)
        case "sync_conflict" | "duplicate_version" | "tag_conflict" | "pr_conflict":
            return int(ErrorCode.CONFLICT_ERROR)
        case "git_failed" | "remote_failed" | "registry_failed":
            return int(ErrorCode.NETWORK_ERROR)
        case "manifest_invalid" | "lock_timeout":
            return int(ErrorCode.IO_ERROR)
        case (
            "checks_failed"
            | "checks_timeout"
            | "tag_propagation_timeout"
            | "workflow_failed"
        ):
            return int(ErrorCode.PUBLISH_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.PUBLISH_ERROR)
