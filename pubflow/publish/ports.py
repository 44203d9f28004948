"""Interfaces to the systems a publish run talks to besides git.

The orchestrator only depends on these protocols. ``GhRemote`` and
``NpmRegistry`` are the production implementations; dry runs use the
stand-ins in ``pubflow.publish.dryrun``; tests use in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from pubflow.core.config import MergeMethod
from pubflow.core.result import Result
from pubflow.publish.errors import PublishError
from pubflow.publish.model import (
    CheckRun,
    MergeState,
    PullRequestHandle,
    ReleaseNotes,
    WorkflowRun,
)


class RemoteApi(Protocol):
    def find_open_pull_request(
        self, head_branch: str
    ) -> Result[PullRequestHandle | None, PublishError]: ...

    def create_pull_request(
        self, *, title: str, body: str, head: str, base: str
    ) -> Result[PullRequestHandle, PublishError]: ...

    def pull_request_checks(self, pr: PullRequestHandle) -> Result[list[CheckRun], PublishError]:
        """Current check runs; an empty list means none reported yet."""
        ...

    def pull_request_merge_state(
        self, pr: PullRequestHandle
    ) -> Result[MergeState, PublishError]: ...

    def merge_pull_request(
        self, pr: PullRequestHandle, *, method: MergeMethod, delete_branch: bool
    ) -> Result[None, PublishError]:
        """Merge ``pr``; an unmergeable PR yields kind ``pr_conflict``."""
        ...

    def create_release(
        self, *, tag: str, title: str, body: str, prerelease: bool
    ) -> Result[str, PublishError]:
        """Create the release for an existing tag and return its URL.

        A tag the API cannot see yet yields kind ``tag_propagation_timeout``.
        """
        ...

    def close_milestone(self, title: str) -> Result[bool, PublishError]:
        """Close the open milestone named ``title``; Ok(False) if there is none."""
        ...

    def list_release_runs(self, tag: str) -> Result[list[WorkflowRun], PublishError]: ...


class ArtifactRegistry(Protocol):
    def published_version(self, package_name: str) -> Result[str | None, PublishError]:
        """Latest published version, None when the package was never published."""
        ...


class NotesProvider(Protocol):
    def __call__(
        self, tag: str, previous_tag: str | None
    ) -> Result[ReleaseNotes, PublishError]: ...


class Confirm(Protocol):
    def __call__(self, question: str) -> bool: ...
