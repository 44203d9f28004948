"""Bounded polling waits on the remote API.

Both waits poll on a fixed interval until success, failure or timeout. On
timeout the operator may choose to stop waiting and carry on; that cancels
the wait only, never the run.
"""

from __future__ import annotations

import time
from time import sleep

from pubflow.core.result import Err, Ok, Result
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.publish.errors import PublishError
from pubflow.publish.model import PullRequestHandle, WorkflowRun
from pubflow.publish.ports import Confirm, RemoteApi
from pubflow.publish.timeouts import (
    CHECKS_NONE_REPORTED_GRACE_SECONDS,
    CHECKS_POLL_SECONDS,
    WORKFLOW_POLL_SECONDS,
    WORKFLOW_START_GRACE_SECONDS,
)


def _ask(confirm: Confirm | None, skip_confirmation: bool, question: str) -> bool:
    if skip_confirmation or confirm is None:
        return False
    return confirm(question)


def wait_for_checks(
    *,
    remote: RemoteApi,
    pr: PullRequestHandle,
    timeout: float,
    skip_confirmation: bool,
    confirm: Confirm | None,
    console: ConsoleProtocol,
) -> Result[None, PublishError]:
    """Block until every check on ``pr`` passes.

    No check reported within the grace period means the repository runs
    nothing for this PR: proceed when confirmations are skipped, else ask.
    """
    console.info(f"waiting for checks on PR #{pr.number} (timeout {timeout:.0f}s)")
    start = time.monotonic()
    deadline = start + timeout
    none_deadline = start + CHECKS_NONE_REPORTED_GRACE_SECONDS
    last_pending: int | None = None

    while True:
        result = remote.pull_request_checks(pr)
        if isinstance(result, Err):
            return result
        checks = result.value

        if not checks:
            if time.monotonic() >= none_deadline:
                console.warning(f"no checks reported for PR #{pr.number}")
                if skip_confirmation or _ask(confirm, False, "No checks reported. Merge anyway?"):
                    return Ok(None)
                return Err(
                    PublishError(
                        kind="checks_timeout",
                        message=f"no checks reported for PR #{pr.number}; merge declined",
                        remediation=(f"gh pr checks {pr.number}", "re-run pubflow publish"),
                    )
                )
        else:
            failed = [c for c in checks if c.state == "failure"]
            if failed:
                names = ", ".join(c.name for c in failed)
                return Err(
                    PublishError(
                        kind="checks_failed",
                        message=f"checks failed on PR #{pr.number}: {names}",
                        hint=pr.url,
                        remediation=(
                            f"gh pr checks {pr.number}",
                            f"fix the failures, push to {pr.head_branch}",
                            "re-run pubflow publish",
                        ),
                    )
                )
            pending = sum(1 for c in checks if c.state == "pending")
            if pending == 0:
                console.success(f"all {len(checks)} checks passed")
                return Ok(None)
            if pending != last_pending:
                console.print(f"{pending}/{len(checks)} checks pending", Style.DIM)
                last_pending = pending

        if time.monotonic() >= deadline:
            question = f"Checks still running after {timeout:.0f}s. Merge anyway?"
            if _ask(confirm, skip_confirmation, question):
                console.warning(f"merging PR #{pr.number} without waiting for checks")
                return Ok(None)
            return Err(
                PublishError(
                    kind="checks_timeout",
                    message=f"timed out after {timeout:.0f}s waiting for checks on PR #{pr.number}",
                    hint=pr.url,
                    remediation=(f"gh pr checks {pr.number} --watch", "re-run pubflow publish"),
                )
            )
        sleep(CHECKS_POLL_SECONDS)


def wait_for_release_workflows(
    *,
    remote: RemoteApi,
    tag: str,
    names: list[str],
    timeout: float,
    skip_confirmation: bool,
    confirm: Confirm | None,
    console: ConsoleProtocol,
) -> Result[list[WorkflowRun], PublishError]:
    """Block until the workflows started by the release of ``tag`` complete."""
    wanted = set(names)
    label = ", ".join(sorted(wanted)) if wanted else "release workflows"
    console.info(f"waiting for {label} on {tag} (timeout {timeout:.0f}s)")
    start = time.monotonic()
    deadline = start + timeout
    start_deadline = start + WORKFLOW_START_GRACE_SECONDS

    while True:
        result = remote.list_release_runs(tag)
        if isinstance(result, Err):
            return result
        runs = [r for r in result.value if not wanted or r.name in wanted]

        if not runs:
            if time.monotonic() >= start_deadline:
                console.warning(f"no release workflow started for {tag}")
                return Ok([])
        else:
            failed = [r for r in runs if r.is_complete and not r.succeeded]
            if failed:
                return Err(
                    PublishError(
                        kind="workflow_failed",
                        message="release workflow failed: "
                        + ", ".join(f"{r.name} ({r.conclusion})" for r in failed),
                        hint=failed[0].url,
                        remediation=tuple(f"gh run view {r.id} --log-failed" for r in failed),
                    )
                )
            if all(r.is_complete for r in runs):
                console.success(f"{len(runs)} release workflow(s) completed")
                return Ok(runs)

        if time.monotonic() >= deadline:
            question = f"Release workflows still running after {timeout:.0f}s. Stop waiting?"
            if _ask(confirm, skip_confirmation, question):
                console.warning(f"stopped waiting for release workflows on {tag}")
                return Ok(runs)
            return Err(
                PublishError(
                    kind="checks_timeout",
                    message=f"timed out after {timeout:.0f}s waiting for release workflows",
                    remediation=("gh run list --event release",),
                )
            )
        sleep(WORKFLOW_POLL_SECONDS)
