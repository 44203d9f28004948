from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path

from pubflow.core.config import PublishConfig
from pubflow.core.result import Err
from pubflow.git.repository import Repository
from pubflow.publish.errors import PublishError
from pubflow.publish.manifest import JsonManifestStore
from pubflow.publish.sync import check_in_sync

_NPMRC_VAR_RE = re.compile(r"\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)")
_MAX_LISTED_PATHS = 5


def _failure(message: str, *remediation: str) -> PublishError:
    return PublishError(kind="precondition_failed", message=message, remediation=remediation)


def npmrc_env_vars(repo_root: Path) -> list[str]:
    """Environment variables referenced as ``${VAR}`` or ``$VAR`` in .npmrc."""
    path = repo_root / ".npmrc"
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []

    found: list[str] = []
    for line in text.splitlines():
        if line.lstrip().startswith(("#", ";")):
            continue
        for braced, bare in _NPMRC_VAR_RE.findall(line):
            name = braced or bare
            if name and name not in found:
                found.append(name)
    return found


def required_env_vars(config: PublishConfig, repo_root: Path) -> list[str]:
    names = list(config.required_env_vars)
    names.extend(n for n in npmrc_env_vars(repo_root) if n not in names)
    return names


def run_prechecks(
    repo: Repository,
    *,
    current_branch: str,
    target_branch: str,
    manifest: JsonManifestStore,
    config: PublishConfig,
    env: Mapping[str, str],
) -> list[PublishError]:
    """Structural checks a publish run needs before touching anything.

    Returns every failure found, not just the first, so the operator can fix
    them in one go. An empty list means all checks passed.
    """
    if not repo.exists():
        return [_failure(f"not a git repository: {repo.path}")]

    failures: list[PublishError] = []

    status = repo.status()
    if isinstance(status, Err):
        failures.append(_failure(f"cannot read working tree status: {status.error.message}"))
    elif not status.value.is_clean:
        paths = status.value.paths
        listed = ", ".join(paths[:_MAX_LISTED_PATHS])
        if len(paths) > _MAX_LISTED_PATHS:
            listed += f" (+{len(paths) - _MAX_LISTED_PATHS} more)"
        failures.append(
            _failure(
                f"working tree has uncommitted changes: {listed}",
                "git stash --include-untracked",
                "or commit the changes",
            )
        )

    if current_branch == target_branch:
        failures.append(
            _failure(
                f"already on the target branch {target_branch}",
                "git checkout <working-branch>",
                "run pubflow publish from the branch you want to release",
            )
        )

    if repo.local_branch_exists(target_branch):
        sync = check_in_sync(repo, target_branch)
        if sync.error is not None:
            failures.append(
                _failure(f"could not verify {target_branch} against {repo.remote}: {sync.error}")
            )
        elif not sync.in_sync:
            failures.append(
                _failure(
                    f"local {target_branch} is not in sync with {repo.remote}/{target_branch}",
                    "pubflow publish --sync-target",
                    f"or: git checkout {target_branch} && git pull {repo.remote} {target_branch}",
                )
            )

    failures.extend(_manifest_checks(manifest, config.preflight_script))

    missing = [name for name in required_env_vars(config, repo.path) if not env.get(name)]
    if missing:
        failures.append(
            _failure(
                f"missing required environment variables: {', '.join(missing)}",
                *(f"export {name}=..." for name in missing),
            )
        )

    return failures


def _manifest_checks(manifest: JsonManifestStore, preflight_script: str) -> list[PublishError]:
    if not manifest.exists():
        return [_failure(f"{manifest.path.name} not found in {manifest.path.parent}")]

    loaded = manifest.read()
    if isinstance(loaded, Err):
        return [loaded.error]

    failures: list[PublishError] = []
    if loaded.value.name is None:
        failures.append(_failure(f"{manifest.path.name} has no package name"))
    version = manifest.read_version()
    if isinstance(version, Err):
        failures.append(version.error)
    if not loaded.value.has_script(preflight_script):
        failures.append(
            _failure(
                f"{manifest.path.name} does not declare a {preflight_script!r} script",
                f'add "{preflight_script}" to "scripts" (e.g. "npm run lint && npm test")',
            )
        )
    return failures
