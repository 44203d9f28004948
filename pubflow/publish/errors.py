from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

from pubflow.git.repository import GitError

PublishErrorKind = Literal[
    "precondition_failed",
    "sync_conflict",
    "duplicate_version",
    "tag_conflict",
    "checks_failed",
    "checks_timeout",
    "pr_conflict",
    "tag_propagation_timeout",
    "invalid_version_spec",
    "invalid_input",
    "git_failed",
    "remote_failed",
    "registry_failed",
    "manifest_invalid",
    "workflow_failed",
    "lock_timeout",
]


@dataclass(frozen=True, slots=True)
class PublishError:
    """A fatal condition that stops a publish run.

    Attributes:
        kind: Machine-readable category, mapped to an exit code by the CLI.
        message: One-line description.
        step: Orchestrator step that failed (filled in by the orchestrator).
        hint: Extra context, usually stderr of the failing command.
        remediation: Commands or actions the operator should run before re-running.
    """

    kind: PublishErrorKind
    message: str
    step: str | None = None
    hint: str | None = None
    remediation: tuple[str, ...] = ()

    def at(self, step: str) -> PublishError:
        """Attach ``step`` unless a more precise step is already recorded."""
        if self.step is not None:
            return self
        return replace(self, step=step)


def git_failure(error: GitError, message: str) -> PublishError:
    if error.command == "lock":
        return PublishError(kind="lock_timeout", message=message, hint=error.message)
    return PublishError(
        kind="git_failed",
        message=message,
        hint=f"git {error.command}: {error.message}",
    )
