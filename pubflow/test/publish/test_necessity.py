from __future__ import annotations

from pubflow.git.repository import Repository
from pubflow.publish.necessity import evaluate_necessity
from pubflow.test.gitfixtures import GitSandbox


def _evaluate(sandbox: GitSandbox, target: str = "main"):
    return evaluate_necessity(
        Repository(sandbox.work),
        current_branch="working",
        target_branch=target,
        manifest_name="package.json",
    )


def test_missing_target_is_first_release(sandbox: GitSandbox) -> None:
    result = _evaluate(sandbox)
    assert result.necessary
    assert "first release" in result.reason


def test_identical_branches_proceed_conservatively(sandbox: GitSandbox) -> None:
    sandbox.git("branch", "main")
    result = _evaluate(sandbox)
    assert result.necessary
    assert result.reason == "no detectable diff; proceed conservatively"


def test_version_only_change_is_not_necessary(sandbox: GitSandbox) -> None:
    sandbox.git("branch", "main")
    sandbox.write_manifest("1.0.1-dev.0")
    sandbox.commit_all("bump")
    result = _evaluate(sandbox)
    assert not result.necessary
    assert result.reason == "version-only change, nothing to publish"


def test_manifest_field_change_is_necessary(sandbox: GitSandbox) -> None:
    sandbox.git("branch", "main")
    sandbox.write_manifest("1.0.1-dev.0", description="now with a description")
    sandbox.commit_all("describe")
    result = _evaluate(sandbox)
    assert result.necessary
    assert "changed beyond its version" in result.reason


def test_other_files_are_listed(sandbox: GitSandbox) -> None:
    sandbox.git("branch", "main")
    sandbox.write("lib.js", "x\n")
    sandbox.write_manifest("1.0.1-dev.0")
    sandbox.commit_all("work")
    result = _evaluate(sandbox)
    assert result.necessary
    assert "lib.js" in result.reason
    assert "package.json" not in result.reason


def test_malformed_manifest_defaults_to_necessary(sandbox: GitSandbox) -> None:
    sandbox.git("branch", "main")
    sandbox.write("package.json", "{ not json")
    sandbox.commit_all("break manifest")
    result = _evaluate(sandbox)
    assert result.necessary


def test_idempotent(sandbox: GitSandbox) -> None:
    sandbox.git("branch", "main")
    sandbox.write_manifest("1.0.1-dev.0")
    sandbox.commit_all("bump")
    head = sandbox.head()
    assert _evaluate(sandbox) == _evaluate(sandbox)
    assert sandbox.head() == head
