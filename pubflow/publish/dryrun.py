"""Stand-ins used in dry-run mode.

They synthesize successful answers, print what would have happened and
never run a process or open a connection.
"""

from __future__ import annotations

from pubflow.core.config import MergeMethod
from pubflow.core.result import Ok, Result
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.publish.errors import PublishError
from pubflow.publish.model import CheckRun, MergeState, PullRequestHandle, WorkflowRun


class DryRunRemote:
    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console

    def find_open_pull_request(
        self, head_branch: str
    ) -> Result[PullRequestHandle | None, PublishError]:
        self._console.print(f"(dry-run) assume no open PR for {head_branch}", Style.DIM)
        return Ok(None)

    def create_pull_request(
        self, *, title: str, body: str, head: str, base: str
    ) -> Result[PullRequestHandle, PublishError]:
        del body
        self._console.print(
            f"(dry-run) gh pr create --base {base} --head {head}: {title}", Style.DIM
        )
        return Ok(PullRequestHandle(number=0, url="(dry-run)", head_branch=head, base_branch=base))

    def pull_request_checks(self, pr: PullRequestHandle) -> Result[list[CheckRun], PublishError]:
        del pr
        return Ok([])

    def pull_request_merge_state(self, pr: PullRequestHandle) -> Result[MergeState, PublishError]:
        del pr
        return Ok("mergeable")

    def merge_pull_request(
        self, pr: PullRequestHandle, *, method: MergeMethod, delete_branch: bool
    ) -> Result[None, PublishError]:
        del delete_branch
        self._console.print(f"(dry-run) gh pr merge {pr.head_branch} --{method}", Style.DIM)
        return Ok(None)

    def create_release(
        self, *, tag: str, title: str, body: str, prerelease: bool
    ) -> Result[str, PublishError]:
        del body, prerelease
        self._console.print(f"(dry-run) gh release create {tag} --title {title!r}", Style.DIM)
        return Ok("(dry-run)")

    def close_milestone(self, title: str) -> Result[bool, PublishError]:
        self._console.print(f"(dry-run) close milestone {title}", Style.DIM)
        return Ok(False)

    def list_release_runs(self, tag: str) -> Result[list[WorkflowRun], PublishError]:
        del tag
        return Ok([])


class DryRunRegistry:
    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console

    def published_version(self, package_name: str) -> Result[str | None, PublishError]:
        self._console.print(f"(dry-run) assume {package_name} has no published version", Style.DIM)
        return Ok(None)
