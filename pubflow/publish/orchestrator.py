"""Top-level publish pipeline.

Each step is a precondition for the next. No progress is saved between
runs: every step re-reads the authoritative state (current branch, tags,
open PRs, manifest version), which is what makes a re-run after a failure
safe.

    1 resolve-branches   current and target branch
    2 sync-source        fetch, merge the remote source branch
    3 ensure-target      track or create the target branch
    4 prechecks          clean tree, branch, env vars, preflight script
    5 necessity          skip when nothing but the version changed
    6 prepare-release    version, tag conflicts, deps, preflight, commit, PR
    7 pull-request       wait for checks, merge
    8 tag-and-release    sync target, tag, release, milestone, workflows
    9 reconcile          reset/merge source, bump to next dev version, push

Failures in step 9 are warnings: the release already exists and is never
rolled back.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from pubflow.core.config import PublishConfig
from pubflow.core.result import Err, Ok, Result
from pubflow.git.repository import Repository
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.publish.commands import run_project_command
from pubflow.publish.errors import PublishError, git_failure
from pubflow.publish.manifest import JsonManifestStore
from pubflow.publish.model import (
    PublishOutcome,
    PublishStatus,
    PullRequestHandle,
    ReleaseNotes,
    SyncResult,
)
from pubflow.publish.necessity import evaluate_necessity
from pubflow.publish.notes import GitLogNotes, load_notes_file
from pubflow.publish.ports import ArtifactRegistry, Confirm, NotesProvider, RemoteApi
from pubflow.publish.pr_lifecycle import PullRequestController
from pubflow.publish.prechecks import run_prechecks
from pubflow.publish.semver import SemVer
from pubflow.publish.sync import sync_branch
from pubflow.publish.tagging import (
    check_tag_conflict,
    close_milestone,
    create_release_with_retry,
    ensure_tag,
)
from pubflow.publish.versioning import (
    development_version,
    resolve_target_branch,
    resolve_version,
)
from pubflow.publish.waits import wait_for_release_workflows
from pubflow.publish.workflows import release_workflow_names

STEPS = (
    "resolve-branches",
    "sync-source",
    "ensure-target",
    "prechecks",
    "necessity",
    "prepare-release",
    "pull-request",
    "tag-and-release",
    "reconcile",
)

DEPENDENCY_UPDATE_MESSAGE = "chore: update dependencies"


def release_commit_message(version: SemVer) -> str:
    return f"chore: release {version}"


def dev_bump_message(version: SemVer) -> str:
    return f"chore: bump to {version}"


@dataclass(frozen=True, slots=True)
class PublishOptions:
    """Per-invocation operator choices (CLI flags)."""

    dry_run: bool = False
    target_version: str | None = None
    target_branch: str | None = None
    sync_target: bool = False


@dataclass(frozen=True, slots=True)
class _Prepared:
    pr: PullRequestHandle | None
    proposed: SemVer | None
    skipped_reason: str | None = None


class PublishOrchestrator:
    def __init__(
        self,
        *,
        repo: Repository,
        config: PublishConfig,
        remote: RemoteApi,
        registry: ArtifactRegistry,
        console: ConsoleProtocol,
        options: PublishOptions | None = None,
        notes: NotesProvider | None = None,
        confirm: Confirm | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.repo = repo
        self.config = config
        self.remote = remote
        self.registry = registry
        self.console = console
        self.options = options or PublishOptions()
        self.notes: NotesProvider = notes or GitLogNotes(repo)
        self.confirm = confirm
        self.env: Mapping[str, str] = env if env is not None else {}
        self.manifest = JsonManifestStore(
            repo.path / config.manifest, console=console, dry_run=self.options.dry_run
        )
        self.pr_controller = PullRequestController(
            remote=remote, repo_root=repo.path, console=console, dry_run=self.options.dry_run
        )
        self.step = STEPS[0]
        self.warnings: list[str] = []

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    def run(self) -> Result[PublishOutcome, PublishError]:
        result = self._run()
        if isinstance(result, Err):
            return Err(result.error.at(self.step))
        return result

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run(self) -> Result[PublishOutcome, PublishError]:
        self._enter("resolve-branches")
        current = self.repo.current_branch()
        if current is None:
            return Err(
                PublishError(
                    kind="precondition_failed",
                    message="HEAD is detached; check out the branch to release",
                    remediation=("git checkout <working-branch>",),
                )
            )
        target = resolve_target_branch(
            current,
            self.config.branches,
            default_target=self.config.target_branch,
            override=self.options.target_branch,
        )
        self.console.info(f"releasing {current} -> {target}")

        if self.options.sync_target:
            return self._sync_target_only(current, target)

        self._enter("sync-source")
        synced = self._sync_source(current)
        if isinstance(synced, Err):
            return synced

        self._enter("ensure-target")
        ensured = self._ensure_target(target)
        if isinstance(ensured, Err):
            return ensured

        self._enter("prechecks")
        checked = self._prechecks(current, target)
        if isinstance(checked, Err):
            return checked

        self._enter("necessity")
        necessity = evaluate_necessity(
            self.repo,
            current_branch=current,
            target_branch=target,
            manifest_name=self.config.manifest,
        )
        if not necessity.necessary:
            self.console.info(f"nothing to publish: {necessity.reason}")
            return Ok(self._outcome("skipped", necessity.reason, target=target))
        self.console.info(f"release necessary: {necessity.reason}")

        self._enter("prepare-release")
        prepared = self._prepare_release(current, target)
        if isinstance(prepared, Err):
            return prepared
        if prepared.value.pr is None:
            reason = prepared.value.skipped_reason or "already published"
            return Ok(self._outcome("skipped", reason, target=target))
        pr = prepared.value.pr

        released_head = self.repo.rev_parse(f"refs/heads/{current}")
        released_sha = released_head.value if isinstance(released_head, Ok) else None

        self._enter("pull-request")
        merged = self._wait_and_merge(pr)
        if isinstance(merged, Err):
            return merged

        self._enter("tag-and-release")
        released = self._tag_and_release(current, target, prepared.value.proposed)
        if isinstance(released, Err):
            return released
        version, stashed, workflow_error = released.value
        tag = version.to_tag()

        self._enter("reconcile")
        self._reconcile(
            current, target, released=version, released_sha=released_sha, stashed=stashed
        )

        if workflow_error is not None:
            self.step = "tag-and-release"
            return Err(workflow_error)

        self.console.success(f"published {tag}")
        return Ok(
            self._outcome(
                "published",
                f"released {tag}",
                version=tag.removeprefix("v"),
                tag=tag,
                pr=pr,
                target=target,
            )
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _sync_target_only(self, current: str, target: str) -> Result[PublishOutcome, PublishError]:
        """Recovery mode: bring the local target branch up to date and stop."""
        self._enter("sync-source")
        if not self.repo.local_branch_exists(target):
            return Err(
                PublishError(
                    kind="precondition_failed",
                    message=f"target branch {target} does not exist locally",
                    remediation=(f"git fetch {self.repo.remote} {target}",),
                )
            )

        with self.repo.locked(f"sync-target {target}") as lock:
            if isinstance(lock, Err):
                return Err(git_failure(lock.error, "could not lock the working copy"))
            switched = self.repo.checkout(target)
            if isinstance(switched, Err):
                return Err(git_failure(switched.error, f"failed to check out {target}"))

            result = self._sync(target)
            back = self.repo.checkout(current)
            if isinstance(back, Err):
                self._warn(f"could not switch back to {current}: {back.error.message}")

        if result.conflict_resolution_required:
            return Err(self._conflict_error(result))
        if result.error is not None:
            return Err(
                PublishError(
                    kind="git_failed", message=f"failed to sync {target}", hint=result.error
                )
            )
        return Ok(self._outcome("synchronized", f"{target} synchronized", target=target))

    def _sync_source(self, current: str) -> Result[None, PublishError]:
        fetched = self.repo.fetch()
        if isinstance(fetched, Err):
            self._warn(f"git fetch failed; continuing with local state: {fetched.error.message}")

        result = self._sync(current)
        if result.conflict_resolution_required:
            return Err(self._conflict_error(result))
        if result.error is not None:
            self._warn(f"could not sync {current} with {self.repo.remote}: {result.error}")
        return Ok(None)

    def _ensure_target(self, target: str) -> Result[None, PublishError]:
        if self.repo.local_branch_exists(target):
            return Ok(None)

        on_remote = self.repo.remote_branch_exists(target)
        if isinstance(on_remote, Err):
            return Err(git_failure(on_remote.error, f"failed to look up {target} on the remote"))

        with self.repo.locked(f"create {target}") as lock:
            if isinstance(lock, Err):
                return Err(git_failure(lock.error, "could not lock the working copy"))
            if on_remote.value:
                self.console.info(f"tracking {self.repo.remote}/{target}")
                created = self.repo.create_branch(target, f"{self.repo.remote}/{target}")
                if isinstance(created, Err):
                    return Err(git_failure(created.error, f"failed to create {target}"))
                return Ok(None)

            self.console.info(f"{target} does not exist anywhere; creating it from HEAD")
            created = self.repo.create_branch(target, "HEAD")
            if isinstance(created, Err):
                return Err(git_failure(created.error, f"failed to create {target}"))
            pushed = self.repo.push(target)
            if isinstance(pushed, Err):
                return Err(git_failure(pushed.error, f"failed to push new branch {target}"))
        return Ok(None)

    def _prechecks(self, current: str, target: str) -> Result[None, PublishError]:
        failures = run_prechecks(
            self.repo,
            current_branch=current,
            target_branch=target,
            manifest=self.manifest,
            config=self.config,
            env=self.env,
        )
        if not failures:
            self.console.success("prechecks passed")
            return Ok(None)

        if self.dry_run:
            for failure in failures:
                self._warn(f"(dry-run) precheck failed: {failure.message}")
            return Ok(None)

        if len(failures) == 1:
            return Err(failures[0])
        remediation = tuple(step for f in failures for step in f.remediation)
        return Err(
            PublishError(
                kind="precondition_failed",
                message=f"{len(failures)} prechecks failed: "
                + "; ".join(f.message for f in failures),
                remediation=remediation,
            )
        )

    def _prepare_release(self, current: str, target: str) -> Result[_Prepared, PublishError]:
        found = self.pr_controller.lookup(current)
        if isinstance(found, Err):
            return found
        if found.value is not None:
            return Ok(_Prepared(pr=found.value, proposed=None))

        manifest = self.manifest.read()
        if isinstance(manifest, Err):
            return manifest
        current_version = self.manifest.read_version()
        if isinstance(current_version, Err):
            return current_version
        package_name = manifest.value.name or self.repo.path.name

        resolution = resolve_version(
            current_version.value,
            current,
            self.config.branches,
            default_target=self.config.target_branch,
            requested=self.options.target_version,
            target_override=self.options.target_branch,
        )
        if isinstance(resolution, Err):
            return resolution
        proposed = resolution.value.version.proposed
        self.console.info(f"version {current_version.value} -> {proposed}")

        decision = check_tag_conflict(
            self.repo,
            self.registry,
            tag=proposed.to_tag(),
            version=str(proposed),
            package_name=package_name,
            skip_already_published=self.config.skip_already_published,
            force_republish=self.config.force_republish,
            console=self.console,
        )
        if isinstance(decision, Err):
            if not self.dry_run:
                return decision
            self._warn(f"(dry-run) {decision.error.message}")
        elif decision.value == "skip_published":
            reason = f"{proposed} already published"
            return Ok(_Prepared(pr=None, proposed=proposed, skipped_reason=reason))

        with self.repo.locked("prepare release") as lock:
            if isinstance(lock, Err):
                return Err(git_failure(lock.error, "could not lock the working copy"))
            committed = self._commit_release(current, proposed)
            if isinstance(committed, Err):
                return committed

        title = release_commit_message(proposed)
        if not self.dry_run:
            message = self.repo.last_commit_message()
            if isinstance(message, Ok) and message.value:
                title = message.value.splitlines()[0]

        created = self.pr_controller.create(title=title, head=current, base=target)
        if isinstance(created, Err):
            return created
        return Ok(_Prepared(pr=created.value, proposed=proposed))

    def _commit_release(self, current: str, proposed: SemVer) -> Result[None, PublishError]:
        commands = self.config.commands
        update = run_project_command(
            [*commands.update, *self.config.dependency_update_patterns],
            cwd=self.repo.path,
            console=self.console,
            dry_run=self.dry_run,
        )
        if isinstance(update, Err):
            return update

        preflight = run_project_command(
            commands.preflight_for(self.config.preflight_script),
            cwd=self.repo.path,
            console=self.console,
            dry_run=self.dry_run,
        )
        if isinstance(preflight, Err):
            return preflight

        manifest_paths = [self.config.manifest]
        added = self.repo.add(manifest_paths)
        if isinstance(added, Err):
            return Err(git_failure(added.error, f"failed to stage {self.config.manifest}"))
        if self.repo.has_staged_changes():
            committed = self.repo.commit(DEPENDENCY_UPDATE_MESSAGE)
            if isinstance(committed, Err):
                return Err(git_failure(committed.error, "failed to commit dependency updates"))

        written = self.manifest.write_version(proposed)
        if isinstance(written, Err):
            return written

        for action, what in (
            (lambda: self.repo.add(manifest_paths), "stage the version bump"),
            (lambda: self.repo.commit(release_commit_message(proposed)), "commit the version bump"),
            (lambda: self.repo.push(current), f"push {current}"),
        ):
            done = action()
            if isinstance(done, Err):
                return Err(git_failure(done.error, f"failed to {what}"))
        return Ok(None)

    def _wait_and_merge(self, pr: PullRequestHandle) -> Result[None, PublishError]:
        waited = self.pr_controller.wait_for_checks(
            pr,
            timeout=self.config.checks_timeout,
            skip_confirmation=self.config.skip_confirmations,
            confirm=self.confirm,
        )
        if isinstance(waited, Err):
            return waited
        return self.pr_controller.merge(pr, method=self.config.merge_method)

    def _tag_and_release(
        self, current: str, target: str, proposed: SemVer | None
    ) -> Result[tuple[SemVer, bool, PublishError | None], PublishError]:
        """Returns (released version, stashed, release workflow error).

        A failure after the stash returns to ``current`` and restores the
        stash, so the next run starts from the source branch again.
        """
        with self.repo.locked(f"release on {target}") as lock:
            if isinstance(lock, Err):
                return Err(git_failure(lock.error, "could not lock the working copy"))

            stash = self.repo.stash_push(f"pubflow: before checkout {target}")
            if isinstance(stash, Err):
                return Err(git_failure(stash.error, "failed to stash local changes"))
            stashed = stash.value

            tagged = self._tag_on_target(target, proposed)
            if isinstance(tagged, Err):
                return Err(self._leave_target(current, stashed, tagged.error))
        version, tag = tagged.value

        notes = self._release_notes(tag)
        url = create_release_with_retry(
            self.remote,
            tag=tag,
            notes=notes,
            prerelease=version.is_prerelease,
            console=self.console,
        )
        if isinstance(url, Err):
            return Err(self._leave_target(current, stashed, url.error))
        self.console.success(f"created release {tag} {url.value}".rstrip())

        if self.config.close_milestones:
            warning = close_milestone(self.remote, tag=tag, console=self.console)
            if warning is not None:
                self._warn(warning)

        return Ok((version, stashed, self._wait_release_workflows(tag)))

    def _tag_on_target(
        self, target: str, proposed: SemVer | None
    ) -> Result[tuple[SemVer, str], PublishError]:
        switched = self.repo.checkout(target)
        if isinstance(switched, Err):
            return Err(git_failure(switched.error, f"failed to check out {target}"))

        result = self._sync(target)
        if result.conflict_resolution_required:
            return Err(self._conflict_error(result))
        if result.error is not None and not self.dry_run:
            return Err(
                PublishError(
                    kind="git_failed",
                    message=f"failed to bring {target} up to date after the merge",
                    hint=result.error,
                    remediation=(
                        f"git pull {self.repo.remote} {target}",
                        "re-run pubflow publish",
                    ),
                )
            )

        version = proposed if self.dry_run and proposed is not None else None
        if version is None:
            read = self.manifest.read_version()
            if isinstance(read, Err):
                return read
            version = read.value
        tag = version.to_tag()

        tagged = ensure_tag(self.repo, tag=tag, console=self.console)
        if isinstance(tagged, Err):
            return tagged
        return Ok((version, tag))

    def _leave_target(self, current: str, stashed: bool, error: PublishError) -> PublishError:
        """Switch back to ``current`` and pop the stash; what fails goes into the remediation."""
        manual: list[str] = []
        with self.repo.locked(f"back to {current}") as lock:
            restored = isinstance(lock, Ok) and (
                self.repo.current_branch() == current
                or isinstance(self.repo.checkout(current), Ok)
            )
            if not restored:
                manual.append(f"git checkout {current}")
            if stashed and (not restored or isinstance(self.repo.stash_pop(), Err)):
                manual.append("git stash pop")
        if not manual:
            return error
        return replace(error, remediation=(*manual, *error.remediation))

    def _release_notes(self, tag: str) -> ReleaseNotes:
        previous = None if self.dry_run else self.repo.previous_tag(tag)
        notes = self.notes(tag, previous)
        if isinstance(notes, Ok):
            return notes.value
        self._warn(f"could not generate release notes: {notes.error.message}")
        return ReleaseNotes(title=tag, body=f"Release {tag}\n")

    def _wait_release_workflows(self, tag: str) -> PublishError | None:
        if not self.config.wait_for_release_workflows:
            return None
        if self.dry_run:
            self.console.info("(dry-run) not waiting for release workflows")
            return None

        names = list(self.config.release_workflow_names)
        if not names:
            detected = release_workflow_names(self.repo.path)
            if isinstance(detected, Err):
                problems = ", ".join(f"{e.path.name}: {e.message}" for e in detected.error)
                self._warn(f"could not detect release workflows ({problems}); waiting for any")
            elif not detected.value:
                self.console.info("no workflow is triggered by releases; not waiting")
                return None
            else:
                names = detected.value

        waited = wait_for_release_workflows(
            remote=self.remote,
            tag=tag,
            names=names,
            timeout=self.config.release_workflows_timeout,
            skip_confirmation=self.config.skip_confirmations,
            confirm=self.confirm,
            console=self.console,
        )
        if isinstance(waited, Err):
            # Reconciliation still runs; the run reports this afterwards.
            self.console.error(waited.error.message)
            return waited.error
        return None

    def _reconcile(
        self,
        current: str,
        target: str,
        *,
        released: SemVer,
        released_sha: str | None,
        stashed: bool,
    ) -> None:
        remote = self.repo.remote
        with self.repo.locked(f"reconcile {current}") as lock:
            if isinstance(lock, Err):
                self._warn(f"could not lock the working copy: {lock.error.message}")
                self._manual(f"git checkout {current} && git reset --hard {target}")
                return

            switched = self.repo.checkout(current)
            if isinstance(switched, Err):
                self._warn(f"could not switch back to {current}: {switched.error.message}")
                self._manual(f"git checkout {current}")
                return

            force = self.config.merge_method == "squash"
            lease: str | None = None
            if force:
                lease_ok, lease = self._reset_onto_target(current, target, released_sha)
                if not lease_ok:
                    force = False
            else:
                self._merge_target_back(current, target)

            if stashed:
                popped = self.repo.stash_pop()
                if isinstance(popped, Err):
                    self._warn(f"could not restore stashed changes: {popped.error.message}")
                    self._manual("git stash pop")

            self._bump_dev_version(current, released)

            pushed = self.repo.push(current, force_with_lease=force, expect=lease)
            if isinstance(pushed, Err):
                self._warn(f"could not push {current}: {pushed.error.message}")
                flag = "--force-with-lease " if force else ""
                self._manual(f"git push {flag}{remote} {current}")
            elif not self.dry_run:
                self.console.success(f"{current} is back in sync with {target}")

    def _reset_onto_target(
        self, current: str, target: str, released_sha: str | None
    ) -> tuple[bool, str | None]:
        """Squash merges rewrite history: reset ``current`` onto ``target``.

        Returns whether force-pushing is safe and the remote sha to lease on.
        The remote tip must be the merged head or already part of target,
        otherwise someone pushed after the PR was opened and their commits
        would be lost.
        """
        reset = self.repo.reset_hard(target)
        if isinstance(reset, Err):
            self._warn(f"could not reset {current} to {target}: {reset.error.message}")
            self._manual(f"git checkout {current} && git reset --hard {target}")
            return (False, None)

        fetched = self.repo.fetch(current)
        if isinstance(fetched, Err):
            self._warn(f"could not fetch {current}: {fetched.error.message}")

        remote_tip = self.repo.remote_branch_sha(current)
        if isinstance(remote_tip, Err):
            self._warn(f"could not read {self.repo.remote}/{current}: {remote_tip.error.message}")
            self._manual(f"git push --force-with-lease {self.repo.remote} {current}")
            return (False, None)
        tip = remote_tip.value
        if tip is None or tip == released_sha:
            return (True, tip)

        ancestor = self.repo.is_ancestor(tip, target)
        if isinstance(ancestor, Ok) and ancestor.value:
            return (True, tip)

        self._warn(
            f"{self.repo.remote}/{current} has commits that are not part of {target}; "
            "not force-pushing"
        )
        self._manual(
            f"git log {target}..{self.repo.remote}/{current}",
            f"git push --force-with-lease {self.repo.remote} {current}",
        )
        return (False, None)

    def _merge_target_back(self, current: str, target: str) -> None:
        if isinstance(self.repo.merge(target, ff_only=True), Ok):
            return
        merged = self.repo.merge(target)
        if isinstance(merged, Err):
            self.repo.merge_abort()
            self._warn(f"could not merge {target} back into {current}: {merged.error.message}")
            self._manual(f"git checkout {current} && git merge {target}")

    def _bump_dev_version(self, current: str, released: SemVer) -> None:
        dev = development_version(released, self.config.rule_for(current))
        self.console.info(f"next development version: {dev}")
        written = self.manifest.write_version(dev)
        if isinstance(written, Err):
            self._warn(written.error.message)
            return

        for action in (
            lambda: self.repo.add([self.config.manifest]),
            lambda: self.repo.commit(dev_bump_message(dev)),
        ):
            done = action()
            if isinstance(done, Err):
                self._warn(f"could not commit the development bump: {done.error.message}")
                self._manual(
                    f"git add {self.config.manifest}",
                    f'git commit -m "{dev_bump_message(dev)}"',
                )
                return

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _sync(self, branch: str) -> SyncResult:
        result = sync_branch(
            self.repo,
            branch,
            manifest_name=self.config.manifest,
            install_cmd=self.config.commands.install,
            console=self.console,
        )
        if result.auto_resolved:
            self.console.info(f"auto-resolved: {', '.join(result.auto_resolved)}")
        for warning in result.warnings:
            self._warn(warning)
        return result

    def _conflict_error(self, result: SyncResult) -> PublishError:
        remote_ref = f"{self.repo.remote}/{result.branch}"
        return PublishError(
            kind="sync_conflict",
            message=(
                f"merging {remote_ref} into {result.branch} conflicts in: "
                + ", ".join(result.conflicted_files)
            ),
            remediation=(
                f"git checkout {result.branch}",
                f"git merge {remote_ref}",
                "resolve the conflicts and commit",
                "re-run pubflow publish",
            ),
        )

    def _enter(self, step: str) -> None:
        self.step = step
        index = STEPS.index(step) + 1
        self.console.header(f"[{index}/{len(STEPS)}] {step}")

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        self.console.warning(message)

    def _manual(self, *commands: str) -> None:
        self.console.print("manual follow-up:", Style.DIM)
        for command in commands:
            self.console.print(f"  {command}", Style.DIM)

    def _outcome(
        self,
        status: PublishStatus,
        reason: str,
        *,
        version: str | None = None,
        tag: str | None = None,
        pr: PullRequestHandle | None = None,
        target: str | None = None,
    ) -> PublishOutcome:
        return PublishOutcome(
            status=status,
            reason=reason,
            version=version,
            tag=tag,
            pull_request=pr,
            target_branch=target,
            warnings=list(self.warnings),
        )


def build_notes_provider(
    repo: Repository, notes_file: Path | None
) -> Result[NotesProvider, PublishError]:
    if notes_file is None:
        return Ok(GitLogNotes(repo))
    loaded = load_notes_file(notes_file)
    if isinstance(loaded, Err):
        return loaded
    return Ok(GitLogNotes(repo, extra=loaded.value))
