from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pubflow.publish.semver import SemVer

PublishStatus = Literal["published", "skipped", "synchronized"]
CheckState = Literal["pending", "success", "failure", "none"]
MergeState = Literal["mergeable", "conflicting", "blocked", "unknown"]


@dataclass(frozen=True, slots=True)
class VersionState:
    current: SemVer
    proposed: SemVer
    is_prerelease: bool

    @property
    def tag(self) -> str:
        return self.proposed.to_tag()


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of bringing one local branch up to date with its remote.

    ``in_sync`` is False whenever the branch could not be reconciled; the
    reason is either ``conflict_resolution_required`` (with the offending
    files) or a transport/git ``error``.
    """

    branch: str
    in_sync: bool
    local_sha: str | None = None
    remote_sha: str | None = None
    conflict_resolution_required: bool = False
    conflicted_files: tuple[str, ...] = ()
    auto_resolved: tuple[str, ...] = ()
    remote_missing: bool = False
    error: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ReleaseNecessity:
    necessary: bool
    reason: str


@dataclass(frozen=True, slots=True)
class PullRequestHandle:
    number: int
    url: str
    head_branch: str
    base_branch: str


@dataclass(frozen=True, slots=True)
class TagRecord:
    name: str
    commit: str | None = None


@dataclass(frozen=True, slots=True)
class CheckRun:
    name: str
    state: CheckState
    link: str | None = None


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    id: int
    name: str
    status: str
    conclusion: str | None
    url: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == "completed"

    @property
    def succeeded(self) -> bool:
        return self.conclusion in {"success", "skipped", "neutral"}


@dataclass(frozen=True, slots=True)
class ReleaseNotes:
    title: str
    body: str


def _empty_warnings() -> list[str]:
    return []


@dataclass
class PublishOutcome:
    """Result of a publish run, reported by the CLI."""

    status: PublishStatus
    reason: str
    version: str | None = None
    tag: str | None = None
    pull_request: PullRequestHandle | None = None
    target_branch: str | None = None
    warnings: list[str] = field(default_factory=_empty_warnings)

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"
