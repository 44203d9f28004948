"""Version tags and release records.

A tag, a registry version and a release record are three independent
facts: after a crashed run any subset may exist. Each is checked on its
own before anything is created.
"""

from __future__ import annotations

from time import sleep
from typing import Literal

from pubflow.core.result import Err, Ok, Result
from pubflow.git.repository import Repository
from pubflow.output.console import ConsoleProtocol
from pubflow.publish.errors import PublishError, git_failure
from pubflow.publish.model import ReleaseNotes, TagRecord
from pubflow.publish.ports import ArtifactRegistry, RemoteApi
from pubflow.publish.timeouts import (
    RELEASE_CREATE_ATTEMPTS,
    RELEASE_CREATE_RETRY_DELAY_SECONDS,
    TAG_SETTLE_DELAY_SECONDS,
)

TagDecision = Literal["clear", "skip_published"]


def check_tag_conflict(
    repo: Repository,
    registry: ArtifactRegistry,
    *,
    tag: str,
    version: str,
    package_name: str,
    skip_already_published: bool,
    force_republish: bool,
    console: ConsoleProtocol,
) -> Result[TagDecision, PublishError]:
    """Decide what an existing tag for ``version`` means before it is proposed.

    - no tag anywhere: clear
    - tag + registry already at ``version``: published; skip or duplicate error
    - tag + registry elsewhere: orphan of an interrupted run; delete when
      forced, otherwise refuse without touching either tag
    """
    local = repo.local_tag_exists(tag)
    remote = repo.remote_tag_exists(tag)
    if isinstance(remote, Err):
        return Err(git_failure(remote.error, f"failed to check remote tag {tag}"))
    if not local and not remote.value:
        return Ok("clear")

    places = (("locally", local), ("remotely", remote.value))
    where = " and ".join(w for w, present in places if present)
    published = registry.published_version(package_name)
    if isinstance(published, Err):
        return published

    if published.value == version:
        if skip_already_published:
            console.info(f"{package_name}@{version} is already published; skipping")
            return Ok("skip_published")
        return Err(
            PublishError(
                kind="duplicate_version",
                message=f"{package_name}@{version} is already published (tag {tag} exists {where})",
                remediation=(
                    "bump the version on the working branch",
                    "or re-run with --skip-already-published",
                ),
            )
        )

    if not force_republish:
        commands: list[str] = []
        if local:
            commands.append(f"git tag -d {tag}")
        if remote.value:
            commands.append(f"git push {repo.remote} :refs/tags/{tag}")
        commands.append("re-run pubflow publish (or pass --force-republish)")
        registry_state = published.value or "nothing"
        return Err(
            PublishError(
                kind="tag_conflict",
                message=(
                    f"tag {tag} exists {where} but the registry has {registry_state} published; "
                    "it is probably left over from an interrupted run"
                ),
                remediation=tuple(commands),
            )
        )

    console.warning(f"force-republish: deleting orphan tag {tag} ({where})")
    if local:
        deleted = repo.delete_tag(tag)
        if isinstance(deleted, Err):
            return Err(git_failure(deleted.error, f"failed to delete local tag {tag}"))
    if remote.value:
        deleted = repo.delete_remote_tag(tag)
        if isinstance(deleted, Err):
            return Err(git_failure(deleted.error, f"failed to delete remote tag {tag}"))
    return Ok("clear")


def ensure_tag(
    repo: Repository,
    *,
    tag: str,
    console: ConsoleProtocol,
    settle_delay: float = TAG_SETTLE_DELAY_SECONDS,
) -> Result[TagRecord, PublishError]:
    """Create ``tag`` at HEAD and push it, skipping whatever already exists."""
    head = repo.rev_parse("HEAD")
    if isinstance(head, Err):
        return Err(git_failure(head.error, "failed to resolve HEAD"))

    if repo.local_tag_exists(tag):
        console.info(f"tag {tag} already exists locally")
    else:
        created = repo.tag(tag)
        if isinstance(created, Err):
            return Err(git_failure(created.error, f"failed to create tag {tag}"))

    on_remote = repo.remote_tag_exists(tag)
    if isinstance(on_remote, Err):
        return Err(git_failure(on_remote.error, f"failed to check remote tag {tag}"))
    if on_remote.value:
        console.info(f"tag {tag} already exists on {repo.remote}")
    else:
        pushed = repo.push(f"refs/tags/{tag}")
        if isinstance(pushed, Err):
            return Err(git_failure(pushed.error, f"failed to push tag {tag}"))
        if not repo.dry_run and settle_delay > 0:
            # The API lags behind the git endpoint for freshly pushed tags.
            sleep(settle_delay)

    return Ok(TagRecord(name=tag, commit=head.value))


def create_release_with_retry(
    remote: RemoteApi,
    *,
    tag: str,
    notes: ReleaseNotes,
    prerelease: bool,
    console: ConsoleProtocol,
    attempts: int = RELEASE_CREATE_ATTEMPTS,
    delay: float = RELEASE_CREATE_RETRY_DELAY_SECONDS,
) -> Result[str, PublishError]:
    """Create the release record, retrying only while the tag is not visible yet."""
    for attempt in range(1, attempts + 1):
        result = remote.create_release(
            tag=tag, title=notes.title, body=notes.body, prerelease=prerelease
        )
        if isinstance(result, Ok):
            return result
        if result.error.kind != "tag_propagation_timeout":
            return result
        if attempt < attempts:
            console.warning(
                f"tag {tag} not visible yet (attempt {attempt}/{attempts}); "
                f"retrying in {delay:.0f}s"
            )
            sleep(delay)

    return Err(
        PublishError(
            kind="tag_propagation_timeout",
            message=f"tag {tag} was not found on the remote after {attempts} attempts",
            remediation=(
                f"git ls-remote --tags origin refs/tags/{tag}",
                f"gh release create {tag} --verify-tag",
            ),
        )
    )


def close_milestone(remote: RemoteApi, *, tag: str, console: ConsoleProtocol) -> str | None:
    """Close the milestone named after the bare version; returns a warning on failure."""
    title = tag.removeprefix("v")
    result = remote.close_milestone(title)
    match result:
        case Ok(True):
            console.success(f"closed milestone {title}")
            return None
        case Ok(False):
            return None
        case Err(error):
            return f"could not close milestone {title}: {error.message}"
    return None
