from __future__ import annotations

import json
from pathlib import Path

import pytest

from pubflow.core.result import Err, Ok, Result
from pubflow.output.console import MockConsole
from pubflow.platform.process import ProcessError
from pubflow.publish import gh as gh_mod
from pubflow.publish import tagging
from pubflow.publish.gh import GhRemote, run_gh_read
from pubflow.publish.model import PullRequestHandle, ReleaseNotes

PR = PullRequestHandle(
    number=12,
    url="https://github.com/o/r/pull/12",
    head_branch="working",
    base_branch="main",
)
MILESTONES = "api repos/{owner}/{repo}/milestones?state=open&per_page=100"
TAG_REF = "api repos/{owner}/{repo}/git/ref/tags/v1.0.1"


def _fail(
    cmd: list[str], returncode: int, *, stdout: str = "", stderr: str = ""
) -> Err[ProcessError]:
    error = ProcessError(command=tuple(cmd), returncode=returncode, stdout=stdout, stderr=stderr)
    return Err(error)


class ScriptedRun:
    """Answers gh invocations by their leading subcommand words."""

    def __init__(self, answers: dict[str, list[Result[str, ProcessError]]]) -> None:
        self._answers = answers
        self.calls: list[list[str]] = []

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        *,
        extra_env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        del cwd, extra_env, timeout
        self.calls.append(cmd)
        key = " ".join(cmd[1:3])
        queue = self._answers[key]
        return queue.pop(0) if len(queue) > 1 else queue[0]


@pytest.fixture
def slept(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    delays: list[float] = []
    monkeypatch.setattr(gh_mod, "sleep", delays.append)
    return delays


def _remote(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, answers
) -> tuple[GhRemote, ScriptedRun]:
    fake = ScriptedRun(answers)
    monkeypatch.setattr(gh_mod, "run_process", fake)
    return GhRemote(tmp_path, console=MockConsole()), fake


class TestRunGhRead:
    def test_retries_transient_failures(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, slept: list[float]
    ) -> None:
        cmd = ["gh", "pr", "list"]
        flaky = _fail(cmd, 1, stderr="HTTP 502: Bad Gateway")
        fake = ScriptedRun({"pr list": [flaky, Ok("[]")]})
        monkeypatch.setattr(gh_mod, "run_process", fake)

        result = run_gh_read(repo_root=tmp_path, cmd=cmd, message="lookup failed")

        assert result == Ok("[]")
        assert len(fake.calls) == 2
        assert slept == [1.0]

    def test_permanent_failure_is_not_retried(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, slept: list[float]
    ) -> None:
        cmd = ["gh", "pr", "list"]
        fake = ScriptedRun({"pr list": [_fail(cmd, 1, stderr="HTTP 401: Bad credentials")]})
        monkeypatch.setattr(gh_mod, "run_process", fake)

        result = run_gh_read(repo_root=tmp_path, cmd=cmd, message="lookup failed")

        assert isinstance(result, Err)
        assert result.error.kind == "remote_failed"
        assert result.error.message == "lookup failed"
        assert "Bad credentials" in (result.error.hint or "")
        assert len(fake.calls) == 1
        assert slept == []

    def test_gives_up_after_configured_attempts(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, slept: list[float]
    ) -> None:
        cmd = ["gh", "pr", "list"]
        fake = ScriptedRun({"pr list": [_fail(cmd, 1, stderr="connection reset by peer")]})
        monkeypatch.setattr(gh_mod, "run_process", fake)

        result = run_gh_read(
            repo_root=tmp_path, cmd=cmd, message="lookup failed", retry_attempts=3
        )

        assert isinstance(result, Err)
        assert len(fake.calls) == 3
        assert slept == [1.0, 2.0]


class TestPullRequests:
    def test_find_returns_first_open_pr(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        payload = json.dumps(
            [
                {
                    "number": 7,
                    "url": "https://x/pull/7",
                    "headRefName": "working",
                    "baseRefName": "main",
                }
            ]
        )
        remote, _ = _remote(monkeypatch, tmp_path, {"pr list": [Ok(payload)]})

        result = remote.find_open_pull_request("working")

        assert result == Ok(PullRequestHandle(7, "https://x/pull/7", "working", "main"))

    def test_find_without_match(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        remote, _ = _remote(monkeypatch, tmp_path, {"pr list": [Ok("[]")]})
        assert remote.find_open_pull_request("working") == Ok(None)

    def test_find_rejects_invalid_json(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        remote, _ = _remote(monkeypatch, tmp_path, {"pr list": [Ok("<html>")]})
        result = remote.find_open_pull_request("working")
        assert isinstance(result, Err)
        assert "invalid JSON" in result.error.message

    def test_create_parses_number_from_url(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        remote, fake = _remote(
            monkeypatch, tmp_path, {"pr create": [Ok("https://github.com/o/r/pull/41\n")]}
        )

        result = remote.create_pull_request(
            title="chore: release 1.0.1", body="", head="working", base="main"
        )

        assert isinstance(result, Ok)
        assert result.value.number == 41
        assert result.value.base_branch == "main"
        assert fake.calls[0][:7] == ["gh", "pr", "create", "--base", "main", "--head", "working"]

    def test_create_with_unexpected_output(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        remote, _ = _remote(monkeypatch, tmp_path, {"pr create": [Ok("created\n")]})
        result = remote.create_pull_request(title="t", body="", head="working", base="main")
        assert isinstance(result, Err)
        assert result.error.message == "unexpected gh pr create output"


class TestChecks:
    def test_pending_exit_code_still_parses_payload(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        payload = json.dumps(
            [
                {"name": "build", "bucket": "pass", "link": "l1"},
                {"name": "lint", "bucket": "pending"},
                {"name": "docs", "bucket": "skipping"},
            ]
        )
        cmd = ["gh", "pr", "checks"]
        answers = {"pr checks": [_fail(cmd, 8, stdout=payload)]}
        remote, _ = _remote(monkeypatch, tmp_path, answers)

        result = remote.pull_request_checks(PR)

        assert isinstance(result, Ok)
        assert [(c.name, c.state) for c in result.value] == [
            ("build", "success"),
            ("lint", "pending"),
            ("docs", "success"),
        ]

    def test_failed_checks_exit_one(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        payload = json.dumps([{"name": "build", "bucket": "fail"}])
        cmd = ["gh", "pr", "checks"]
        answers = {"pr checks": [_fail(cmd, 1, stdout=payload)]}
        remote, _ = _remote(monkeypatch, tmp_path, answers)

        result = remote.pull_request_checks(PR)

        assert isinstance(result, Ok)
        assert result.value[0].state == "failure"

    def test_no_checks_reported_is_empty(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "pr", "checks"]
        remote, _ = _remote(
            monkeypatch,
            tmp_path,
            {"pr checks": [_fail(cmd, 1, stderr="no checks reported on the 'working' branch")]},
        )
        assert remote.pull_request_checks(PR) == Ok([])

    def test_other_failures_are_errors(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "pr", "checks"]
        answers = {"pr checks": [_fail(cmd, 4, stderr="auth required")]}
        remote, _ = _remote(monkeypatch, tmp_path, answers)
        result = remote.pull_request_checks(PR)
        assert isinstance(result, Err)
        assert result.error.kind == "remote_failed"


class TestMerge:
    @pytest.mark.parametrize(
        ("view", "expected"),
        [
            ({"mergeable": "MERGEABLE", "mergeStateStatus": "CLEAN"}, "mergeable"),
            ({"mergeable": "CONFLICTING", "mergeStateStatus": "DIRTY"}, "conflicting"),
            ({"mergeable": "MERGEABLE", "mergeStateStatus": "BLOCKED"}, "blocked"),
            ({"mergeable": "UNKNOWN"}, "unknown"),
        ],
    )
    def test_merge_state(
        self,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        view: dict[str, str],
        expected: str,
    ) -> None:
        remote, _ = _remote(monkeypatch, tmp_path, {"pr view": [Ok(json.dumps(view))]})
        assert remote.pull_request_merge_state(PR) == Ok(expected)

    def test_merge_passes_method_and_branch_deletion(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        remote, fake = _remote(monkeypatch, tmp_path, {"pr merge": [Ok("")]})

        assert remote.merge_pull_request(PR, method="squash", delete_branch=True) == Ok(None)
        assert fake.calls[0] == ["gh", "pr", "merge", "12", "--squash", "--delete-branch"]

    def test_conflicting_pr_is_classified(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "pr", "merge"]
        remote, _ = _remote(
            monkeypatch,
            tmp_path,
            {
                "pr merge": [_fail(cmd, 1, stderr="Pull request is not mergeable")],
                "pr view": [
                    Ok(json.dumps({"mergeable": "CONFLICTING", "mergeStateStatus": "DIRTY"}))
                ],
            },
        )

        result = remote.merge_pull_request(PR, method="squash", delete_branch=False)

        assert isinstance(result, Err)
        assert result.error.kind == "pr_conflict"
        assert "git merge origin/main" in result.error.remediation

    def test_blocked_pr_is_not_a_conflict(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "pr", "merge"]
        remote, _ = _remote(
            monkeypatch,
            tmp_path,
            {
                "pr merge": [_fail(cmd, 1, stderr="not mergeable: review required")],
                "pr view": [
                    Ok(json.dumps({"mergeable": "MERGEABLE", "mergeStateStatus": "BLOCKED"}))
                ],
            },
        )

        result = remote.merge_pull_request(PR, method="merge", delete_branch=False)

        assert isinstance(result, Err)
        assert result.error.kind == "remote_failed"


def _run_item(run_id: int, conclusion: str, head: str) -> dict[str, object]:
    return {
        "databaseId": run_id,
        "name": "Publish",
        "status": "completed",
        "conclusion": conclusion,
        "headBranch": head,
    }


class TestReleases:
    def test_create_returns_url(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        url = "https://github.com/o/r/releases/tag/v1.0.1"
        remote, fake = _remote(
            monkeypatch, tmp_path, {TAG_REF: [Ok("")], "release create": [Ok(url + "\n")]}
        )

        result = remote.create_release(
            tag="v1.0.1", title="v1.0.1", body="notes", prerelease=True
        )

        assert result == Ok(url)
        assert "--verify-tag" in fake.calls[-1]
        assert fake.calls[-1][-1] == "--prerelease"

    def test_tag_unknown_to_api_is_not_released_yet(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        ref = ["gh", "api", "repos/{owner}/{repo}/git/ref/tags/v1.0.1"]
        remote, fake = _remote(
            monkeypatch, tmp_path, {TAG_REF: [_fail(ref, 1, stderr="gh: Not Found (HTTP 404)")]}
        )

        result = remote.create_release(tag="v1.0.1", title="v1.0.1", body="", prerelease=False)

        assert isinstance(result, Err)
        assert result.error.kind == "tag_propagation_timeout"
        assert len(fake.calls) == 1

    def test_verify_tag_rejection_maps_to_propagation_kind(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "release", "create"]
        stderr = (
            "tag v1.0.1 doesn't exist in the repo o/r, aborting due to --verify-tag flag"
        )
        remote, _ = _remote(
            monkeypatch,
            tmp_path,
            {TAG_REF: [Ok("")], "release create": [_fail(cmd, 1, stderr=stderr)]},
        )

        result = remote.create_release(tag="v1.0.1", title="v1.0.1", body="", prerelease=False)

        assert isinstance(result, Err)
        assert result.error.kind == "tag_propagation_timeout"

    def test_other_not_found_is_a_plain_failure(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "release", "create"]
        stderr = "HTTP 404: Not Found (https://api.github.com/repos/o/r/releases)"
        remote, _ = _remote(
            monkeypatch,
            tmp_path,
            {TAG_REF: [Ok("")], "release create": [_fail(cmd, 1, stderr=stderr)]},
        )

        result = remote.create_release(tag="v1.0.1", title="v1.0.1", body="", prerelease=False)

        assert isinstance(result, Err)
        assert result.error.kind == "remote_failed"

    def test_failed_tag_lookup_is_a_plain_failure(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        ref = ["gh", "api", "repos/{owner}/{repo}/git/ref/tags/v1.0.1"]
        remote, fake = _remote(
            monkeypatch,
            tmp_path,
            {TAG_REF: [_fail(ref, 1, stderr="gh: Bad credentials (HTTP 401)")]},
        )

        result = remote.create_release(tag="v1.0.1", title="v1.0.1", body="", prerelease=False)

        assert isinstance(result, Err)
        assert result.error.kind == "remote_failed"
        assert len(fake.calls) == 1

    def test_retry_stops_at_the_first_unrelated_failure(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cmd = ["gh", "release", "create"]
        stderr = "HTTP 404: Not Found (https://api.github.com/repos/o/r/releases)"
        remote, fake = _remote(
            monkeypatch,
            tmp_path,
            {TAG_REF: [Ok("")], "release create": [_fail(cmd, 1, stderr=stderr)]},
        )
        monkeypatch.setattr(tagging, "sleep", lambda _: None)

        result = tagging.create_release_with_retry(
            remote,
            tag="v1.0.1",
            notes=ReleaseNotes(title="v1.0.1", body=""),
            prerelease=False,
            console=MockConsole(),
        )

        assert isinstance(result, Err)
        assert result.error.kind == "remote_failed"
        assert [" ".join(c[1:3]) for c in fake.calls].count("release create") == 1

    def test_retry_waits_for_the_tag_to_appear(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        ref = ["gh", "api", "repos/{owner}/{repo}/git/ref/tags/v1.0.1"]
        missing = _fail(ref, 1, stderr="gh: Not Found (HTTP 404)")
        url = "https://github.com/o/r/releases/tag/v1.0.1"
        remote, _ = _remote(
            monkeypatch,
            tmp_path,
            {TAG_REF: [missing, Ok("")], "release create": [Ok(url)]},
        )
        delays: list[float] = []
        monkeypatch.setattr(tagging, "sleep", delays.append)

        result = tagging.create_release_with_retry(
            remote,
            tag="v1.0.1",
            notes=ReleaseNotes(title="v1.0.1", body=""),
            prerelease=False,
            console=MockConsole(),
        )

        assert result == Ok(url)
        assert delays == [tagging.RELEASE_CREATE_RETRY_DELAY_SECONDS]

    def test_close_existing_milestone(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        listing = json.dumps([{"title": "1.0.0", "number": 3}, {"title": "1.0.1", "number": 4}])
        remote, fake = _remote(
            monkeypatch, tmp_path, {MILESTONES: [Ok(listing)], "api -X": [Ok("{}")]}
        )

        assert remote.close_milestone("1.0.1") == Ok(True)
        assert "repos/{owner}/{repo}/milestones/4" in fake.calls[-1]

    def test_missing_milestone_is_not_an_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        remote, fake = _remote(monkeypatch, tmp_path, {MILESTONES: [Ok("[]")]})
        assert remote.close_milestone("1.0.1") == Ok(False)
        assert len(fake.calls) == 1

    def test_release_runs_filtered_by_tag(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        payload = json.dumps(
            [
                _run_item(1, "success", "v1.0.1"),
                _run_item(2, "failure", "v1.0.0"),
            ]
        )
        remote, _ = _remote(monkeypatch, tmp_path, {"run list": [Ok(payload)]})

        result = remote.list_release_runs("v1.0.1")

        assert isinstance(result, Ok)
        assert [r.id for r in result.value] == [1]
        assert result.value[0].succeeded
