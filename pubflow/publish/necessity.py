from __future__ import annotations

from pubflow.core.result import Err
from pubflow.git.repository import Repository
from pubflow.publish.manifest import parse_manifest
from pubflow.publish.model import ReleaseNecessity

_MAX_LISTED_FILES = 5


def evaluate_necessity(
    repo: Repository,
    *,
    current_branch: str,
    target_branch: str,
    manifest_name: str,
) -> ReleaseNecessity:
    """Decide whether ``current_branch`` carries anything worth publishing.

    Read-only. Every inconclusive signal resolves to "necessary": an
    unneeded publish is recoverable, a silently skipped one is not.
    """
    if isinstance(repo.rev_parse(target_branch), Err):
        return ReleaseNecessity(True, f"first release to {target_branch}")

    changed = repo.diff_names(target_branch, current_branch)
    if isinstance(changed, Err):
        return ReleaseNecessity(True, f"could not diff against {target_branch}; proceeding")

    files = changed.value
    if not files:
        return ReleaseNecessity(True, "no detectable diff; proceed conservatively")

    others = [f for f in files if f != manifest_name]
    if others:
        listed = ", ".join(others[:_MAX_LISTED_FILES])
        extra = len(others) - _MAX_LISTED_FILES
        more = f" (+{extra} more)" if extra > 0 else ""
        return ReleaseNecessity(True, f"changed files: {listed}{more}")

    return _compare_manifests(repo, current_branch, target_branch, manifest_name)


def _compare_manifests(
    repo: Repository, current_branch: str, target_branch: str, manifest_name: str
) -> ReleaseNecessity:
    texts: list[str] = []
    for ref in (current_branch, target_branch):
        shown = repo.show_file(ref, manifest_name)
        if isinstance(shown, Err):
            return ReleaseNecessity(True, f"could not read {manifest_name} at {ref}; proceeding")
        texts.append(shown.value)

    manifests = [parse_manifest(text, source=f"{manifest_name}") for text in texts]
    current, target = manifests
    if isinstance(current, Err) or isinstance(target, Err):
        return ReleaseNecessity(True, f"could not parse {manifest_name}; proceeding")

    if current.value.without_version() == target.value.without_version():
        return ReleaseNecessity(False, "version-only change, nothing to publish")
    return ReleaseNecessity(True, f"{manifest_name} changed beyond its version")
