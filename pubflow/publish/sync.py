"""Bring a local branch into agreement with its remote counterpart.

Conflicts confined to version bookkeeping (the manifest) are resolved by
keeping the local side; any other conflict aborts the merge and is handed
back to the operator. Transport failures are reported, never retried.
"""

from __future__ import annotations

from collections.abc import Sequence

from pubflow.core.result import Err
from pubflow.git.repository import Repository
from pubflow.output.console import ConsoleProtocol
from pubflow.publish.commands import run_project_command
from pubflow.publish.model import SyncResult

DEPENDENCY_COMMIT_MESSAGE = "chore: update dependencies after merge"


def version_bookkeeping_files(manifest_name: str) -> frozenset[str]:
    # Lock files stay out of version control, so only the manifest qualifies.
    return frozenset({manifest_name})


def check_in_sync(repo: Repository, branch: str) -> SyncResult:
    """Compare a local branch with the remote without changing anything."""
    local = repo.rev_parse(f"refs/heads/{branch}")
    if isinstance(local, Err):
        return SyncResult(branch=branch, in_sync=False, error=local.error.message)

    remote = repo.remote_branch_sha(branch)
    if isinstance(remote, Err):
        return SyncResult(
            branch=branch, in_sync=False, local_sha=local.value, error=remote.error.message
        )
    if remote.value is None:
        return SyncResult(branch=branch, in_sync=True, local_sha=local.value, remote_missing=True)

    return SyncResult(
        branch=branch,
        in_sync=local.value == remote.value,
        local_sha=local.value,
        remote_sha=remote.value,
    )


def sync_branch(
    repo: Repository,
    branch: str,
    *,
    manifest_name: str,
    install_cmd: Sequence[str],
    console: ConsoleProtocol,
) -> SyncResult:
    """Merge ``<remote>/<branch>`` into the checked-out ``branch``.

    The caller must have ``branch`` checked out.
    """
    remote = repo.remote_branch_sha(branch)
    if isinstance(remote, Err):
        return SyncResult(branch=branch, in_sync=False, error=remote.error.message)
    if remote.value is None:
        console.info(f"{branch} has no remote counterpart yet; nothing to sync")
        head = repo.rev_parse("HEAD")
        return SyncResult(
            branch=branch,
            in_sync=True,
            local_sha=head.value if not isinstance(head, Err) else None,
            remote_missing=True,
        )

    with repo.locked(f"sync {branch}") as lock:
        if isinstance(lock, Err):
            return SyncResult(branch=branch, in_sync=False, error=lock.error.message)
        return _merge_remote(
            repo,
            branch,
            remote_sha=remote.value,
            allow_list=version_bookkeeping_files(manifest_name),
            manifest_name=manifest_name,
            install_cmd=install_cmd,
            console=console,
        )


def _merge_remote(
    repo: Repository,
    branch: str,
    *,
    remote_sha: str,
    allow_list: frozenset[str],
    manifest_name: str,
    install_cmd: Sequence[str],
    console: ConsoleProtocol,
) -> SyncResult:
    fetched = repo.fetch(branch)
    if isinstance(fetched, Err):
        return SyncResult(
            branch=branch, in_sync=False, remote_sha=remote_sha, error=fetched.error.message
        )

    before = repo.rev_parse("HEAD")
    if isinstance(before, Err):
        return SyncResult(
            branch=branch, in_sync=False, remote_sha=remote_sha, error=before.error.message
        )

    remote_ref = f"{repo.remote}/{branch}"
    auto_resolved: tuple[str, ...] = ()
    merged = repo.merge(remote_ref)
    if isinstance(merged, Err):
        unmerged = repo.unmerged_paths()
        if isinstance(unmerged, Err) or not unmerged.value:
            # Failed before touching the index (e.g. untracked files in the way).
            return SyncResult(
                branch=branch,
                in_sync=False,
                local_sha=before.value,
                remote_sha=remote_sha,
                error=merged.error.message,
            )

        conflicted = tuple(unmerged.value)
        if any(path not in allow_list for path in conflicted):
            aborted = repo.merge_abort()
            return SyncResult(
                branch=branch,
                in_sync=False,
                local_sha=before.value,
                remote_sha=remote_sha,
                conflict_resolution_required=True,
                conflicted_files=conflicted,
                error=aborted.error.message if isinstance(aborted, Err) else None,
            )

        listed = ", ".join(conflicted)
        console.info(f"auto-resolving version conflict in {listed} (keeping {branch})")
        for step in (
            lambda: repo.checkout_ours(list(conflicted)),
            lambda: repo.add(list(conflicted)),
            lambda: repo.commit(
                f"Merge {remote_ref} into {branch} (auto-resolved version conflicts)"
            ),
        ):
            done = step()
            if isinstance(done, Err):
                repo.merge_abort()
                return SyncResult(
                    branch=branch,
                    in_sync=False,
                    local_sha=before.value,
                    remote_sha=remote_sha,
                    conflicted_files=conflicted,
                    error=done.error.message,
                )
        auto_resolved = conflicted

    after = repo.rev_parse("HEAD")
    after_sha = after.value if not isinstance(after, Err) else None
    warnings: list[str] = []
    if after_sha is not None and after_sha != before.value:
        warning = _refresh_dependencies(
            repo,
            before=before.value,
            after=after_sha,
            manifest_name=manifest_name,
            install_cmd=install_cmd,
            console=console,
        )
        if warning is not None:
            warnings.append(warning)
        after = repo.rev_parse("HEAD")
        after_sha = after.value if not isinstance(after, Err) else after_sha

    return SyncResult(
        branch=branch,
        in_sync=True,
        local_sha=after_sha,
        remote_sha=remote_sha,
        auto_resolved=auto_resolved,
        warnings=tuple(warnings),
    )


def _refresh_dependencies(
    repo: Repository,
    *,
    before: str,
    after: str,
    manifest_name: str,
    install_cmd: Sequence[str],
    console: ConsoleProtocol,
) -> str | None:
    """Reinstall when the merge touched the manifest; commit what that changes.

    Returns a warning message on failure.
    """
    changed = repo.diff_names(before, after)
    if isinstance(changed, Err):
        return f"could not diff merge result: {changed.error.message}"
    if manifest_name not in changed.value:
        return None

    installed = run_project_command(
        install_cmd, cwd=repo.path, console=console, dry_run=repo.dry_run
    )
    if isinstance(installed, Err):
        return f"{installed.error.message}; run it manually"

    status = repo.status()
    if isinstance(status, Err) or not status.value.tracked_changes:
        return None

    for done in (repo.add_tracked, lambda: repo.commit(DEPENDENCY_COMMIT_MESSAGE)):
        result = done()
        if isinstance(result, Err):
            return f"could not commit dependency changes: {result.error.message}"
    return None
