"""Return to the working branch after a release.

Brings the working branch up to date with both its remote and the target
branch, then bumps the manifest to the next development version. Nothing
is pushed: the operator reviews and pushes the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pubflow.core.config import BranchRule, IncrementLevel, PublishConfig
from pubflow.core.result import Err, Ok, Result
from pubflow.git.repository import Repository
from pubflow.output.console import ConsoleProtocol
from pubflow.publish.errors import PublishError, git_failure
from pubflow.publish.manifest import JsonManifestStore
from pubflow.publish.semver import SemVer
from pubflow.publish.sync import sync_branch
from pubflow.publish.versioning import (
    DEFAULT_DEV_TAG,
    development_version,
    parse_version_spec,
)

DEFAULT_WORKING_BRANCH = "working"


def _empty_warnings() -> list[str]:
    return []


@dataclass
class DevelopOutcome:
    branch: str
    version: str
    bumped: bool
    warnings: list[str] = field(default_factory=_empty_warnings)


def working_branch(config: PublishConfig) -> tuple[str, BranchRule | None]:
    """First policy entry carrying a version tag, else ``working``."""
    for name, rule in config.branches.items():
        if rule.version_tag:
            return name, rule
    return DEFAULT_WORKING_BRANCH, config.rule_for(DEFAULT_WORKING_BRANCH)


def start_development(
    repo: Repository,
    config: PublishConfig,
    *,
    console: ConsoleProtocol,
    requested: str | None = None,
    dry_run: bool = False,
) -> Result[DevelopOutcome, PublishError]:
    branch, rule = working_branch(config)
    target = rule.target_branch if rule is not None and rule.target_branch else config.target_branch
    warnings: list[str] = []

    level: IncrementLevel | None = None
    literal: SemVer | None = None
    if requested is not None:
        parsed = parse_version_spec(requested)
        if isinstance(parsed, Err):
            return parsed
        if isinstance(parsed.value, SemVer):
            literal = parsed.value
        else:
            level = parsed.value

    fetched = repo.fetch()
    if isinstance(fetched, Err):
        warnings.append(f"git fetch failed; continuing with local state: {fetched.error.message}")
        console.warning(warnings[-1])

    with repo.locked(f"develop {branch}") as lock:
        if isinstance(lock, Err):
            return Err(git_failure(lock.error, "could not lock the working copy"))

        switched = _switch_to(repo, branch, console=console)
        if isinstance(switched, Err):
            return switched

        synced = sync_branch(
            repo,
            branch,
            manifest_name=config.manifest,
            install_cmd=config.commands.install,
            console=console,
        )
        for warning in synced.warnings:
            warnings.append(warning)
            console.warning(warning)
        if synced.conflict_resolution_required:
            return Err(
                PublishError(
                    kind="sync_conflict",
                    message=(
                        f"merging {repo.remote}/{branch} into {branch} conflicts in: "
                        + ", ".join(synced.conflicted_files)
                    ),
                    remediation=(f"git merge {repo.remote}/{branch}", "resolve, commit, re-run"),
                )
            )
        if synced.error is not None:
            warnings.append(f"could not sync {branch} with {repo.remote}: {synced.error}")
            console.warning(warnings[-1])

        merged = _merge_target(repo, branch, target)
        if isinstance(merged, Err):
            return merged

        store = JsonManifestStore(repo.path / config.manifest, console=console, dry_run=dry_run)
        current = store.read_version()
        if isinstance(current, Err):
            return current

        tag = (rule.version_tag if rule is not None else None) or DEFAULT_DEV_TAG
        if literal is None and level is None and current.value.prerelease_tag == tag:
            console.info(f"{branch} already carries {current.value}; no bump needed")
            return Ok(DevelopOutcome(branch, str(current.value), bumped=False, warnings=warnings))

        dev = literal or development_version(current.value, rule, level=level)
        if not dev > current.value:
            return Err(
                PublishError(
                    kind="invalid_version_spec",
                    message=f"development version {dev} does not exceed current {current.value}",
                )
            )

        written = store.write_version(dev)
        if isinstance(written, Err):
            return written
        for step in (
            lambda: repo.add([config.manifest]),
            lambda: repo.commit(f"chore: bump to {dev}"),
        ):
            done = step()
            if isinstance(done, Err):
                return Err(git_failure(done.error, "failed to commit the development version"))

    console.success(f"{branch} is at {dev}; push when ready: git push {repo.remote} {branch}")
    return Ok(DevelopOutcome(branch, str(dev), bumped=True, warnings=warnings))


def _switch_to(
    repo: Repository, branch: str, *, console: ConsoleProtocol
) -> Result[None, PublishError]:
    if repo.current_branch() == branch:
        return Ok(None)

    if repo.local_branch_exists(branch):
        switched = repo.checkout(branch)
    else:
        on_remote = repo.remote_branch_exists(branch)
        if isinstance(on_remote, Err):
            return Err(git_failure(on_remote.error, f"failed to look up {branch} on the remote"))
        start = f"{repo.remote}/{branch}" if on_remote.value else "HEAD"
        console.info(f"creating {branch} from {start}")
        switched = repo.checkout_new_branch(branch, start)

    if isinstance(switched, Err):
        return Err(git_failure(switched.error, f"failed to check out {branch}"))
    return Ok(None)


def _merge_target(repo: Repository, branch: str, target: str) -> Result[None, PublishError]:
    if not repo.local_branch_exists(target):
        return Ok(None)
    if isinstance(repo.merge(target, ff_only=True), Ok):
        return Ok(None)

    merged = repo.merge(target)
    if isinstance(merged, Ok):
        return Ok(None)

    unmerged = repo.unmerged_paths()
    files = unmerged.value if isinstance(unmerged, Ok) else []
    repo.merge_abort()
    listed = ", ".join(files) if files else merged.error.message
    return Err(
        PublishError(
            kind="sync_conflict",
            message=f"merging {target} into {branch} failed: {listed}",
            remediation=(
                f"git checkout {branch}",
                f"git merge {target}",
                "resolve the conflicts and commit",
                "re-run pubflow develop",
            ),
        )
    )
