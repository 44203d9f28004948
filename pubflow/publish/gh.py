from __future__ import annotations

import json
import re
import shutil
from pathlib import Path
from time import sleep

from pubflow.core.config import MergeMethod
from pubflow.core.result import Err, Ok, Result
from pubflow.core.structured import as_obj_list, as_str_dict, get_int, get_str
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.platform.process import ProcessError
from pubflow.platform.process import run as run_process
from pubflow.publish.errors import PublishError, PublishErrorKind
from pubflow.publish.model import (
    CheckRun,
    CheckState,
    MergeState,
    PullRequestHandle,
    WorkflowRun,
)
from pubflow.publish.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_PR_URL_RE = re.compile(r"/pull/(\d+)\s*$")

# gh pr checks exits 8 while checks are pending and 1 when some failed; the
# JSON payload on stdout is valid in both cases.
_CHECKS_PENDING_EXIT = 8

# gh release create --verify-tag rejects a tag the API cannot see yet with
# "tag vX doesn't exist in the repo o/r, aborting due to --verify-tag flag".
_VERIFY_TAG_REJECTED = "aborting due to --verify-tag"
_HTTP_NOT_FOUND = "(http 404)"
_NOT_MERGEABLE_MARKERS = (
    "not mergeable",
    "merge conflict",
    "is not mergeable",
)


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = error.output.lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def run_gh_read(
    *,
    repo_root: Path,
    cmd: list[str],
    message: str,
    kind: PublishErrorKind = "remote_failed",
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, PublishError]:
    """Run an idempotent gh query, retrying transient API/network failures."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=repo_root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(PublishError(kind=kind, message=message, hint=error.output or None))

    return Err(PublishError(kind=kind, message=message))


def _parse_json(payload: str, *, what: str) -> Result[object, PublishError]:
    try:
        return Ok(json.loads(payload))
    except json.JSONDecodeError as e:
        return Err(PublishError(kind="remote_failed", message=f"invalid JSON from {what}: {e}"))


def ensure_gh_available() -> Result[None, PublishError]:
    if shutil.which("gh") is None:
        return Err(
            PublishError(
                kind="precondition_failed",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def _tag_not_visible(tag: str, *, hint: str | None) -> PublishError:
    return PublishError(
        kind="tag_propagation_timeout",
        message=f"tag {tag} is not visible to the API yet",
        hint=hint or None,
    )


def _check_state(bucket: str | None) -> CheckState:
    match bucket:
        case "pass" | "skipping":
            return "success"
        case "fail" | "cancel":
            return "failure"
        case _:
            return "pending"


class GhRemote:
    """RemoteApi implemented with the GitHub CLI, run inside the repository."""

    def __init__(self, repo_root: Path, *, console: ConsoleProtocol) -> None:
        self._root = repo_root
        self._console = console

    def find_open_pull_request(
        self, head_branch: str
    ) -> Result[PullRequestHandle | None, PublishError]:
        result = run_gh_read(
            repo_root=self._root,
            cmd=[
                "gh",
                "pr",
                "list",
                "--head",
                head_branch,
                "--state",
                "open",
                "--json",
                "number,url,headRefName,baseRefName",
            ],
            message=f"failed to look up open PR for {head_branch}",
        )
        if isinstance(result, Err):
            return result

        parsed = _parse_json(result.value, what="gh pr list")
        if isinstance(parsed, Err):
            return parsed

        for item in as_obj_list(parsed.value) or []:
            data = as_str_dict(item)
            if data is None:
                continue
            number = get_int(data, "number")
            url = get_str(data, "url")
            if number is None or url is None:
                continue
            return Ok(
                PullRequestHandle(
                    number=number,
                    url=url,
                    head_branch=get_str(data, "headRefName") or head_branch,
                    base_branch=get_str(data, "baseRefName") or "",
                )
            )
        return Ok(None)

    def create_pull_request(
        self, *, title: str, body: str, head: str, base: str
    ) -> Result[PullRequestHandle, PublishError]:
        cmd = ["gh", "pr", "create", "--base", base, "--head", head]
        cmd += ["--title", title, "--body", body]
        self._console.print(f"gh pr create --base {base} --head {head}", Style.DIM)

        result = run_process(cmd, cwd=self._root, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                PublishError(
                    kind="remote_failed",
                    message=f"failed to create PR {head} -> {base}",
                    hint=result.error.output or None,
                )
            )

        url = result.value.strip().splitlines()[-1] if result.value.strip() else ""
        m = _PR_URL_RE.search(url)
        if m is None:
            return Err(
                PublishError(
                    kind="remote_failed", message="unexpected gh pr create output", hint=url
                )
            )
        return Ok(
            PullRequestHandle(number=int(m.group(1)), url=url, head_branch=head, base_branch=base)
        )

    def pull_request_checks(self, pr: PullRequestHandle) -> Result[list[CheckRun], PublishError]:
        cmd = ["gh", "pr", "checks", str(pr.number), "--json", "name,bucket,link"]
        result = run_process(cmd, cwd=self._root, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            payload = result.value
        else:
            error = result.error
            if "no checks reported" in error.output.lower():
                return Ok([])
            if not error.stdout.strip() or error.returncode not in {1, _CHECKS_PENDING_EXIT}:
                return Err(
                    PublishError(
                        kind="remote_failed",
                        message=f"failed to query checks for PR #{pr.number}",
                        hint=error.output or None,
                    )
                )
            payload = error.stdout

        parsed = _parse_json(payload, what="gh pr checks")
        if isinstance(parsed, Err):
            return parsed

        checks: list[CheckRun] = []
        for item in as_obj_list(parsed.value) or []:
            data = as_str_dict(item)
            if data is None:
                continue
            checks.append(
                CheckRun(
                    name=get_str(data, "name") or "(unnamed)",
                    state=_check_state(get_str(data, "bucket")),
                    link=get_str(data, "link"),
                )
            )
        return Ok(checks)

    def pull_request_merge_state(self, pr: PullRequestHandle) -> Result[MergeState, PublishError]:
        result = run_gh_read(
            repo_root=self._root,
            cmd=["gh", "pr", "view", str(pr.number), "--json", "mergeable,mergeStateStatus"],
            message=f"failed to query merge state of PR #{pr.number}",
        )
        if isinstance(result, Err):
            return result

        parsed = _parse_json(result.value, what="gh pr view")
        if isinstance(parsed, Err):
            return parsed
        data = as_str_dict(parsed.value) or {}

        mergeable = get_str(data, "mergeable")
        merge_state = get_str(data, "mergeStateStatus")
        if mergeable == "CONFLICTING" or merge_state == "DIRTY":
            return Ok("conflicting")
        if merge_state == "BLOCKED":
            return Ok("blocked")
        if mergeable == "MERGEABLE":
            return Ok("mergeable")
        return Ok("unknown")

    def merge_pull_request(
        self, pr: PullRequestHandle, *, method: MergeMethod, delete_branch: bool
    ) -> Result[None, PublishError]:
        cmd = ["gh", "pr", "merge", str(pr.number), f"--{method}"]
        if delete_branch:
            cmd.append("--delete-branch")
        self._console.print(" ".join(cmd), Style.DIM)

        result = run_process(cmd, cwd=self._root, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return Ok(None)

        error = result.error
        if self._is_conflict(pr, error):
            return Err(
                PublishError(
                    kind="pr_conflict",
                    message=f"PR #{pr.number} cannot be merged because of conflicts",
                    hint=error.output or None,
                    remediation=(
                        f"git checkout {pr.head_branch}",
                        f"git merge origin/{pr.base_branch}",
                        "resolve the conflicts, commit and push",
                        "re-run pubflow publish",
                    ),
                )
            )
        return Err(
            PublishError(
                kind="remote_failed",
                message=f"failed to merge PR #{pr.number}",
                hint=error.output or None,
            )
        )

    def _is_conflict(self, pr: PullRequestHandle, error: ProcessError) -> bool:
        state = self.pull_request_merge_state(pr)
        if isinstance(state, Ok) and state.value != "unknown":
            return state.value == "conflicting"
        text = error.output.lower()
        return any(marker in text for marker in _NOT_MERGEABLE_MARKERS)

    def create_release(
        self, *, tag: str, title: str, body: str, prerelease: bool
    ) -> Result[str, PublishError]:
        cmd = ["gh", "release", "create", tag, "--title", title, "--notes", body, "--verify-tag"]
        if prerelease:
            cmd.append("--prerelease")

        visible = self.tag_visible(tag)
        if isinstance(visible, Err):
            return visible
        if not visible.value:
            return Err(_tag_not_visible(tag, hint=None))

        self._console.print(f"gh release create {tag} --verify-tag", Style.DIM)
        result = run_process(cmd, cwd=self._root, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return Ok(result.value.strip())

        error = result.error
        if _VERIFY_TAG_REJECTED in error.output:
            return Err(_tag_not_visible(tag, hint=error.output))
        return Err(
            PublishError(
                kind="remote_failed",
                message=f"failed to create release {tag}",
                hint=error.output or None,
            )
        )

    def tag_visible(self, tag: str) -> Result[bool, PublishError]:
        """Whether the API resolves ``refs/tags/<tag>``; a 404 means not yet."""
        cmd = ["gh", "api", f"repos/{{owner}}/{{repo}}/git/ref/tags/{tag}", "--silent"]
        result = run_process(cmd, cwd=self._root, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return Ok(True)
        if _HTTP_NOT_FOUND in result.error.output.lower():
            return Ok(False)
        return Err(
            PublishError(
                kind="remote_failed",
                message=f"failed to look up tag {tag} through the API",
                hint=result.error.output or None,
            )
        )

    def close_milestone(self, title: str) -> Result[bool, PublishError]:
        listing = run_gh_read(
            repo_root=self._root,
            cmd=["gh", "api", "repos/{owner}/{repo}/milestones?state=open&per_page=100"],
            message="failed to list milestones",
        )
        if isinstance(listing, Err):
            return listing

        parsed = _parse_json(listing.value, what="gh api milestones")
        if isinstance(parsed, Err):
            return parsed

        number: int | None = None
        for item in as_obj_list(parsed.value) or []:
            data = as_str_dict(item)
            if data is not None and get_str(data, "title") == title:
                number = get_int(data, "number")
                break
        if number is None:
            return Ok(False)

        self._console.print(f"close milestone {title}", Style.DIM)
        result = run_process(
            [
                "gh",
                "api",
                "-X",
                "PATCH",
                f"repos/{{owner}}/{{repo}}/milestones/{number}",
                "-f",
                "state=closed",
            ],
            cwd=self._root,
            timeout=GH_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(
                PublishError(
                    kind="remote_failed",
                    message=f"failed to close milestone {title}",
                    hint=result.error.output or None,
                )
            )
        return Ok(True)

    def list_release_runs(self, tag: str) -> Result[list[WorkflowRun], PublishError]:
        result = run_gh_read(
            repo_root=self._root,
            cmd=[
                "gh",
                "run",
                "list",
                "--event",
                "release",
                "--limit",
                "30",
                "--json",
                "databaseId,name,status,conclusion,url,headBranch",
            ],
            message="failed to list release workflow runs",
        )
        if isinstance(result, Err):
            return result

        parsed = _parse_json(result.value, what="gh run list")
        if isinstance(parsed, Err):
            return parsed

        runs: list[WorkflowRun] = []
        for item in as_obj_list(parsed.value) or []:
            data = as_str_dict(item)
            if data is None:
                continue
            # Release-triggered runs report the tag as their head branch.
            if get_str(data, "headBranch") != tag:
                continue
            run_id = get_int(data, "databaseId")
            if run_id is None:
                continue
            runs.append(
                WorkflowRun(
                    id=run_id,
                    name=get_str(data, "name") or "(unnamed)",
                    status=get_str(data, "status") or "queued",
                    conclusion=get_str(data, "conclusion"),
                    url=get_str(data, "url"),
                )
            )
        return Ok(runs)
