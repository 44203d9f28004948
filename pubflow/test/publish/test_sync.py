from __future__ import annotations

import json
import sys
from pathlib import Path

from pubflow.git.repository import Repository
from pubflow.output.console import MockConsole
from pubflow.publish.sync import DEPENDENCY_COMMIT_MESSAGE, check_in_sync, sync_branch
from pubflow.test.gitfixtures import GitSandbox, git, manifest_text

NO_INSTALL = ("git", "--version")


def _push_from_other(sandbox: GitSandbox, files: dict[str, str], message: str) -> Path:
    other = sandbox.clone("other")
    for rel, text in files.items():
        (other / rel).write_text(text, encoding="utf-8")
    git(other, "add", "-A")
    git(other, "commit", "-q", "-m", message)
    git(other, "push", "-q", "origin", "working")
    return other


def _sync(sandbox: GitSandbox, install: tuple[str, ...] = NO_INSTALL):
    return sync_branch(
        Repository(sandbox.work),
        "working",
        manifest_name="package.json",
        install_cmd=install,
        console=MockConsole(),
    )


class TestSyncBranch:
    def test_fast_forward(self, sandbox: GitSandbox) -> None:
        _push_from_other(sandbox, {"lib.js": "x\n"}, "add lib")
        result = _sync(sandbox)
        assert result.in_sync
        assert not result.conflict_resolution_required
        assert sandbox.head() == sandbox.origin_sha("working")

    def test_no_remote_counterpart(self, sandbox: GitSandbox) -> None:
        sandbox.git("checkout", "-q", "-b", "solo")
        result = sync_branch(
            Repository(sandbox.work),
            "solo",
            manifest_name="package.json",
            install_cmd=NO_INSTALL,
            console=MockConsole(),
        )
        assert result.in_sync
        assert result.remote_missing

    def test_manifest_only_conflict_keeps_local_version(self, sandbox: GitSandbox) -> None:
        _push_from_other(sandbox, {"package.json": manifest_text("1.0.5")}, "remote bump")
        sandbox.write_manifest("1.0.3")
        sandbox.commit_all("local bump")

        result = _sync(sandbox)

        assert result.in_sync
        assert result.auto_resolved == ("package.json",)
        assert json.loads((sandbox.work / "package.json").read_text())["version"] == "1.0.3"
        assert "auto-resolved version conflicts" in sandbox.git("log", "-1", "--pretty=%s")
        assert Repository(sandbox.work).is_clean()
        # Merge commit has the remote tip as a parent.
        assert sandbox.git("merge-base", "--is-ancestor", "origin/working", "HEAD") == ""

    def test_other_conflict_aborts(self, sandbox: GitSandbox) -> None:
        _push_from_other(sandbox, {"index.js": "module.exports = 'remote';\n"}, "remote edit")
        sandbox.write("index.js", "module.exports = 'local';\n")
        before = sandbox.commit_all("local edit")

        result = _sync(sandbox)

        assert not result.in_sync
        assert result.conflict_resolution_required
        assert result.conflicted_files == ("index.js",)
        assert sandbox.head() == before
        assert Repository(sandbox.work).is_clean()

    def test_mixed_conflict_is_never_auto_resolved(self, sandbox: GitSandbox) -> None:
        _push_from_other(
            sandbox,
            {"package.json": manifest_text("1.0.5"), "index.js": "remote\n"},
            "remote edits",
        )
        sandbox.write_manifest("1.0.3")
        sandbox.write("index.js", "local\n")
        sandbox.commit_all("local edits")

        result = _sync(sandbox)

        assert result.conflict_resolution_required
        assert set(result.conflicted_files) == {"index.js", "package.json"}
        assert result.auto_resolved == ()

    def test_manifest_change_triggers_install_and_separate_commit(
        self, sandbox: GitSandbox
    ) -> None:
        _push_from_other(
            sandbox,
            {"package.json": manifest_text("1.0.0", dependencies={"left-pad": "^1.3.0"})},
            "add dependency",
        )
        sandbox.write("lib.js", "x\n")
        sandbox.commit_all("local work")
        install = (sys.executable, "-c", "open('index.js', 'a').write('// installed\\n')")

        result = _sync(sandbox, install)

        assert result.in_sync
        assert result.warnings == ()
        assert sandbox.git("log", "-1", "--pretty=%s") == DEPENDENCY_COMMIT_MESSAGE
        assert sandbox.git("log", "-2", "--pretty=%s").splitlines()[1].startswith("Merge")

    def test_install_failure_is_a_warning(self, sandbox: GitSandbox) -> None:
        _push_from_other(
            sandbox,
            {"package.json": manifest_text("1.0.0", dependencies={"left-pad": "^1.3.0"})},
            "add dependency",
        )
        install = (sys.executable, "-c", "import sys; sys.exit(3)")

        result = _sync(sandbox, install)

        assert result.in_sync
        assert len(result.warnings) == 1
        assert "run it manually" in result.warnings[0]

    def test_transport_failure_reported(self, sandbox: GitSandbox) -> None:
        sandbox.git("remote", "set-url", "origin", str(sandbox.work.parent / "gone.git"))
        result = _sync(sandbox)
        assert not result.in_sync
        assert result.error is not None
        assert not result.conflict_resolution_required


class TestCheckInSync:
    def test_in_sync(self, sandbox: GitSandbox) -> None:
        result = check_in_sync(Repository(sandbox.work), "working")
        assert result.in_sync
        assert result.local_sha == result.remote_sha

    def test_local_ahead(self, sandbox: GitSandbox) -> None:
        sandbox.write("lib.js", "x\n")
        sandbox.commit_all("local only")
        result = check_in_sync(Repository(sandbox.work), "working")
        assert not result.in_sync

    def test_missing_local_branch(self, sandbox: GitSandbox) -> None:
        result = check_in_sync(Repository(sandbox.work), "main")
        assert not result.in_sync
        assert result.error is not None
