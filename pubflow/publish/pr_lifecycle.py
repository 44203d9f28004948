"""Promotion pull request lifecycle.

    NONE -> LOOKUP -> FOUND ----------------> CHECKS_WAITING -> MERGEABLE -> MERGED
                   \\-> CREATE -> OPEN ------/        |               |
                                                CHECKS_FAILED      CONFLICT

CHECKS_FAILED and CONFLICT end the run, but re-running is safe: the next
run looks the PR up again and resumes at CHECKS_WAITING.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from pubflow.core.config import MergeMethod
from pubflow.core.result import Err, Ok, Result
from pubflow.output.console import ConsoleProtocol
from pubflow.publish.errors import PublishError
from pubflow.publish.model import PullRequestHandle
from pubflow.publish.ports import Confirm, RemoteApi
from pubflow.publish.waits import wait_for_checks
from pubflow.publish.workflows import has_pull_request_workflows

RELEASE_PR_BODY = "Automated release PR."


class PrState(Enum):
    NONE = auto()
    LOOKUP = auto()
    FOUND = auto()
    CREATE = auto()
    OPEN = auto()
    CHECKS_WAITING = auto()
    MERGEABLE = auto()
    MERGED = auto()
    CHECKS_FAILED = auto()
    CONFLICT = auto()


def _empty_history() -> list[PrState]:
    return []


@dataclass
class PullRequestController:
    remote: RemoteApi
    repo_root: Path
    console: ConsoleProtocol
    dry_run: bool = False
    state: PrState = PrState.NONE
    history: list[PrState] = field(default_factory=_empty_history)

    def _enter(self, state: PrState) -> None:
        self.state = state
        self.history.append(state)

    def lookup(self, head_branch: str) -> Result[PullRequestHandle | None, PublishError]:
        self._enter(PrState.LOOKUP)
        found = self.remote.find_open_pull_request(head_branch)
        if isinstance(found, Err):
            return found
        if found.value is None:
            self._enter(PrState.CREATE)
        else:
            self._enter(PrState.FOUND)
            self.console.info(f"resuming open PR #{found.value.number}: {found.value.url}")
        return found

    def create(
        self, *, title: str, head: str, base: str, body: str = RELEASE_PR_BODY
    ) -> Result[PullRequestHandle, PublishError]:
        created = self.remote.create_pull_request(title=title, body=body, head=head, base=base)
        if isinstance(created, Ok):
            self._enter(PrState.OPEN)
            self.console.success(f"opened PR #{created.value.number}: {created.value.url}")
        return created

    def wait_for_checks(
        self,
        pr: PullRequestHandle,
        *,
        timeout: float,
        skip_confirmation: bool,
        confirm: Confirm | None,
    ) -> Result[None, PublishError]:
        self._enter(PrState.CHECKS_WAITING)
        if self.dry_run:
            self.console.info("(dry-run) not waiting for checks")
            return Ok(None)
        if not has_pull_request_workflows(self.repo_root):
            self.console.info("no workflow reports PR checks in this repository; not waiting")
            return Ok(None)

        waited = wait_for_checks(
            remote=self.remote,
            pr=pr,
            timeout=timeout,
            skip_confirmation=skip_confirmation,
            confirm=confirm,
            console=self.console,
        )
        if isinstance(waited, Err):
            self._enter(PrState.CHECKS_FAILED)
        return waited

    def merge(
        self, pr: PullRequestHandle, *, method: MergeMethod
    ) -> Result[None, PublishError]:
        self._enter(PrState.MERGEABLE)
        merged = self.remote.merge_pull_request(pr, method=method, delete_branch=False)
        if isinstance(merged, Err):
            if merged.error.kind == "pr_conflict":
                self._enter(PrState.CONFLICT)
            return merged
        self._enter(PrState.MERGED)
        self.console.success(f"merged PR #{pr.number} ({method})")
        return merged
