"""Git repository abstraction.

``Repository`` wraps the git CLI for one working copy. Read-only queries
run directly. Every call that mutates the working copy, its refs or the
remote goes through ``_mutate``, which:

- holds the working-copy lock (``<git-dir>/pubflow.lock``) for the call;
- echoes the command line to the console;
- in dry-run mode, returns ``Ok("")`` without running anything.

Network reads (``ls-remote``) are answered from remote-tracking refs in
dry-run mode so that no external system is contacted.

Usage:
    repo = Repository(Path("."), console=console)
    with repo.locked("sync main") as lock:
        if isinstance(lock, Err):
            return lock
        repo.fetch("main")
        repo.merge("origin/main")
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from pubflow.core.result import Err, Ok, Result
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.platform.locks import DEFAULT_ACQUIRE_TIMEOUT_SECONDS, FileLock
from pubflow.platform.process import ProcessError
from pubflow.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote"})

LOCK_FILE_NAME = "pubflow.lock"

__all__ = [
    "GitError",
    "GitStatus",
    "LOCK_FILE_NAME",
    "Repository",
    "StatusEntry",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand line that failed (without ``git -C``).
        message: stderr (or stdout) of the failed call.
        returncode: Process return code.
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single ``git status --porcelain`` entry."""

    xy: str
    path: str

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"

    @property
    def is_unmerged(self) -> bool:
        return self.xy in {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed ``git status --porcelain=v1 -b``.

    Attributes:
        branch: Current branch name ("HEAD (no branch)" when detached)
        upstream: Upstream branch (e.g. "origin/main"), None if not set
        ahead: Commits ahead of upstream
        behind: Commits behind upstream
        entries: Staged, unstaged and untracked entries
    """

    branch: str
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return len(self.entries) == 0

    @property
    def tracked_changes(self) -> list[StatusEntry]:
        return [e for e in self.entries if not e.is_untracked]

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.entries]


def _git_error(args: list[str], e: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=" ".join(args),
        message=e.stderr.strip() or e.stdout.strip() or fallback,
        returncode=e.returncode,
    )


class Repository:
    """Git working copy.

    Attributes:
        path: Repository root (the directory containing ``.git``).
        remote: Remote used for branch and tag synchronization.
        dry_run: When True, mutations are echoed but never executed.
    """

    def __init__(
        self,
        path: Path,
        *,
        console: ConsoleProtocol | None = None,
        dry_run: bool = False,
        remote: str = "origin",
        lock_timeout: float | None = None,
    ) -> None:
        self.path = path
        self.remote = remote
        self.dry_run = dry_run
        self._console = console
        self._lock_timeout = lock_timeout
        self._lock: FileLock | None = None
        self._lock_depth = 0

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    @contextmanager
    def locked(self, reason: str) -> Iterator[Result[None, GitError]]:
        """Hold the working-copy lock for the ``with`` body.

        Yields Err when the lock cannot be acquired; the body must not
        mutate anything in that case. Nested use is re-entrant and only the
        outermost exit releases the file.
        """
        if self.dry_run:
            yield Ok(None)
            return

        if self._lock_depth == 0:
            acquired = self._acquire(reason)
            if isinstance(acquired, Err):
                yield acquired
                return

        self._lock_depth += 1
        try:
            yield Ok(None)
        finally:
            self._lock_depth -= 1
            if self._lock_depth == 0 and self._lock is not None:
                self._lock.release()

    def _acquire(self, reason: str) -> Result[None, GitError]:
        git_dir = self.git_dir()
        if git_dir is None:
            return Err(GitError(command="lock", message=f"not a git repository: {self.path}"))

        if self._lock is None:
            timeout = self._lock_timeout or DEFAULT_ACQUIRE_TIMEOUT_SECONDS
            self._lock = FileLock(git_dir / LOCK_FILE_NAME, timeout=timeout)

        result = self._lock.acquire(reason)
        if isinstance(result, Err):
            e = result.error
            holder = f" (held by {e.holder})" if e.holder else ""
            return Err(GitError(command="lock", message=f"{e.message}{holder}", returncode=-1))
        return Ok(None)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def exists(self) -> bool:
        return self.git_dir() is not None

    def git_dir(self) -> Path | None:
        result = self._run(["rev-parse", "--git-dir"])
        if isinstance(result, Err):
            return None
        git_dir = Path(result.value.strip())
        return git_dir if git_dir.is_absolute() else self.path / git_dir

    def current_branch(self) -> str | None:
        """Current branch name, or None on detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def rev_parse(self, ref: str) -> Result[str, GitError]:
        """Resolve ``ref`` to a commit sha."""
        args = ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, f"unknown revision: {ref}"))
        return Ok(result.value.strip())

    def status(self) -> Result[GitStatus, GitError]:
        args = ["status", "--porcelain=v1", "-b"]
        result = self._run(args)
        match result:
            case Err(e):
                return Err(_git_error(args, e, "git status failed"))
            case Ok(stdout):
                return Ok(self._parse_status(stdout))

    def is_clean(self) -> bool:
        """True if the working tree has no changes (False if unknown)."""
        result = self.status()
        return isinstance(result, Ok) and result.value.is_clean

    def local_branch_exists(self, name: str) -> bool:
        result = self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
        return isinstance(result, Ok)

    def remote_branch_sha(self, name: str) -> Result[str | None, GitError]:
        """Head sha of ``name`` on the remote, None when the remote lacks it."""
        if self.dry_run:
            tracking = self._run(
                ["rev-parse", "--verify", "--quiet", f"refs/remotes/{self.remote}/{name}"]
            )
            return Ok(tracking.value.strip() if isinstance(tracking, Ok) else None)

        args = ["ls-remote", "--exit-code", "--heads", self.remote, name]
        result = self._run(args)
        if isinstance(result, Err):
            # --exit-code: 2 means "no matching refs", everything else is transport.
            if result.error.returncode == 2:
                return Ok(None)
            return Err(_git_error(args, result.error, "ls-remote failed"))

        for line in result.value.splitlines():
            sha, _, ref = line.partition("\t")
            if ref.strip() == f"refs/heads/{name}":
                return Ok(sha.strip())
        return Ok(None)

    def remote_branch_exists(self, name: str) -> Result[bool, GitError]:
        return self.remote_branch_sha(name).map(lambda sha: sha is not None)

    def local_tag_exists(self, tag: str) -> bool:
        result = self._run(["rev-parse", "--verify", "--quiet", f"refs/tags/{tag}"])
        return isinstance(result, Ok)

    def remote_tag_exists(self, tag: str) -> Result[bool, GitError]:
        if self.dry_run:
            return Ok(self.local_tag_exists(tag))

        args = ["ls-remote", "--tags", self.remote, f"refs/tags/{tag}"]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, "ls-remote failed"))
        return Ok(bool(result.value.strip()))

    def diff_names(self, base: str, head: str) -> Result[list[str], GitError]:
        """Paths that differ between two refs (``git diff --name-only base..head``)."""
        args = ["diff", "--name-only", f"{base}..{head}"]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, "git diff failed"))
        return Ok([ln.strip() for ln in result.value.splitlines() if ln.strip()])

    def unmerged_paths(self) -> Result[list[str], GitError]:
        """Paths left in conflict by the last merge."""
        args = ["diff", "--name-only", "--diff-filter=U"]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, "git diff failed"))
        return Ok(sorted({ln.strip() for ln in result.value.splitlines() if ln.strip()}))

    def show_file(self, ref: str, path: str) -> Result[str, GitError]:
        args = ["show", f"{ref}:{path}"]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, f"{path} not found at {ref}"))
        return Ok(result.value)

    def is_ancestor(self, ancestor: str, descendant: str) -> Result[bool, GitError]:
        args = ["merge-base", "--is-ancestor", ancestor, descendant]
        result = self._run(args)
        if isinstance(result, Ok):
            return Ok(True)
        if result.error.returncode == 1:
            return Ok(False)
        return Err(_git_error(args, result.error, "merge-base failed"))

    def has_staged_changes(self) -> bool:
        result = self._run(["diff", "--cached", "--quiet"])
        return isinstance(result, Err) and result.error.returncode == 1

    def last_commit_message(self) -> Result[str, GitError]:
        args = ["log", "-1", "--pretty=%B"]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, "git log failed"))
        return Ok(result.value.strip())

    def commit_subjects(
        self, since: str | None, until: str = "HEAD"
    ) -> Result[list[str], GitError]:
        """Commit subjects reachable from ``until`` but not from ``since``, newest first."""
        rev_range = f"{since}..{until}" if since else until
        args = ["log", "--no-merges", "--pretty=%s", rev_range]
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, "git log failed"))
        return Ok([ln.strip() for ln in result.value.splitlines() if ln.strip()])

    def previous_tag(self, ref: str, *, pattern: str = "v*") -> str | None:
        """Most recent tag reachable from ``ref``'s parent, if any."""
        result = self._run(["describe", "--tags", "--abbrev=0", "--match", pattern, f"{ref}^"])
        if isinstance(result, Err):
            return None
        return result.value.strip() or None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def fetch(self, branch: str | None = None) -> Result[str, GitError]:
        args = ["fetch", self.remote] + ([branch] if branch else [])
        return self._mutate(args)

    def merge(self, ref: str, *, ff_only: bool = False) -> Result[str, GitError]:
        args = ["merge", ref, "--ff-only"] if ff_only else ["merge", ref, "--no-edit"]
        return self._mutate(args)

    def merge_abort(self) -> Result[str, GitError]:
        return self._mutate(["merge", "--abort"])

    def checkout(self, branch: str) -> Result[str, GitError]:
        return self._mutate(["checkout", branch])

    def checkout_ours(self, paths: list[str]) -> Result[str, GitError]:
        return self._mutate(["checkout", "--ours", "--", *paths])

    def create_branch(self, name: str, start: str) -> Result[str, GitError]:
        return self._mutate(["branch", name, start])

    def checkout_new_branch(self, name: str, start: str) -> Result[str, GitError]:
        return self._mutate(["checkout", "-b", name, start])

    def add(self, paths: list[str]) -> Result[str, GitError]:
        return self._mutate(["add", "--", *paths])

    def add_tracked(self) -> Result[str, GitError]:
        return self._mutate(["add", "-u"])

    def commit(self, message: str) -> Result[str, GitError]:
        return self._mutate(["commit", "-m", message])

    def push(
        self,
        refspec: str,
        *,
        force_with_lease: bool = False,
        expect: str | None = None,
    ) -> Result[str, GitError]:
        """Push ``refspec``; with ``expect``, the lease pins the remote sha."""
        args = ["push"]
        if force_with_lease and expect:
            args.append(f"--force-with-lease={refspec}:{expect}")
        elif force_with_lease:
            args.append("--force-with-lease")
        return self._mutate([*args, self.remote, refspec])

    def tag(self, name: str, ref: str = "HEAD") -> Result[str, GitError]:
        return self._mutate(["tag", name, ref])

    def delete_tag(self, name: str) -> Result[str, GitError]:
        return self._mutate(["tag", "-d", name])

    def delete_remote_tag(self, name: str) -> Result[str, GitError]:
        return self._mutate(["push", self.remote, f":refs/tags/{name}"])

    def reset_hard(self, ref: str) -> Result[str, GitError]:
        return self._mutate(["reset", "--hard", ref])

    def stash_push(self, message: str) -> Result[bool, GitError]:
        """Stash tracked and untracked changes; Ok(False) when there was nothing."""
        if self.is_clean():
            return Ok(False)
        return self._mutate(["stash", "push", "--include-untracked", "-m", message]).map(
            lambda _: True
        )

    def stash_pop(self) -> Result[str, GitError]:
        return self._mutate(["stash", "pop"])

    def _mutate(self, args: list[str]) -> Result[str, GitError]:
        line = "git " + " ".join(args)
        if self._console is not None:
            self._console.print(line, Style.DIM)
        if self.dry_run:
            return Ok("")

        with self.locked(line) as lock:
            if isinstance(lock, Err):
                return lock
            result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args, result.error, f"{line} failed"))
        return Ok(result.value.strip())

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    # -------------------------------------------------------------------------
    # Status parsing
    # -------------------------------------------------------------------------

    def _parse_status(self, output: str) -> GitStatus:
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        # First line: ## branch...upstream [ahead N, behind M]
        branch, upstream = self._parse_branch_line(lines[0])
        ahead, behind = self._parse_ahead_behind(lines[0])

        entries = [entry for ln in lines[1:] if (entry := self._parse_entry(ln)) is not None]
        return GitStatus(
            branch=branch,
            upstream=upstream,
            ahead=ahead,
            behind=behind,
            entries=tuple(entries),
        )

    def _parse_branch_line(self, line: str) -> tuple[str, str | None]:
        s = line.strip()
        if s.startswith("##"):
            s = s[2:].lstrip()
        s = s.split(" [", 1)[0].strip()
        if "..." in s:
            left, right = s.split("...", 1)
            return (left.strip(), right.strip())
        return (s, None)

    def _parse_ahead_behind(self, line: str) -> tuple[int, int]:
        match = re.search(r"\[([^\]]+)\]", line)
        if not match:
            return (0, 0)
        inside = match.group(1)
        ahead_match = re.search(r"ahead\s+(\d+)", inside)
        behind_match = re.search(r"behind\s+(\d+)", inside)
        ahead = int(ahead_match.group(1)) if ahead_match else 0
        behind = int(behind_match.group(1)) if behind_match else 0
        return (ahead, behind)

    def _parse_entry(self, line: str) -> StatusEntry | None:
        if len(line) < 4:
            return None
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        return StatusEntry(xy=line[:2], path=path.strip('"'))
