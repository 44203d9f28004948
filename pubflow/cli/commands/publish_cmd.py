from __future__ import annotations

from enum import StrEnum
from pathlib import Path

import typer

from pubflow.cli.context import CLIContext, build_context, environment
from pubflow.core.errors import ErrorCode
from pubflow.core.result import Err
from pubflow.output.errors import print_publish_error, publish_error_exit_code
from pubflow.publish.dryrun import DryRunRegistry, DryRunRemote
from pubflow.publish.gh import GhRemote, ensure_gh_available
from pubflow.publish.model import PublishOutcome
from pubflow.publish.orchestrator import (
    PublishOptions,
    PublishOrchestrator,
    build_notes_provider,
)
from pubflow.publish.ports import ArtifactRegistry, RemoteApi
from pubflow.publish.registry import NpmRegistry

# Printed alone on stdout when there is nothing to publish.
SKIP_MARKER = "PUBFLOW_PUBLISH_SKIPPED"


class MergeChoice(StrEnum):
    squash = "squash"
    merge = "merge"
    rebase = "rebase"


def _confirm(question: str) -> bool:
    return typer.confirm(question, default=False, err=True)


def _collaborators(ctx: CLIContext) -> tuple[RemoteApi, ArtifactRegistry]:
    if ctx.dry_run:
        return DryRunRemote(ctx.console), DryRunRegistry(ctx.console)

    available = ensure_gh_available()
    if isinstance(available, Err):
        print_publish_error(available.error, ctx.console)
        raise typer.Exit(code=publish_error_exit_code(available.error))
    return GhRemote(ctx.root, console=ctx.console), NpmRegistry(ctx.root)


def _report(ctx: CLIContext, outcome: PublishOutcome) -> None:
    for warning in outcome.warnings:
        ctx.console.print(f"warning: {warning}")
    if outcome.status == "synchronized":
        ctx.console.success(outcome.reason)
        return
    if outcome.skipped:
        ctx.console.info(f"skipped: {outcome.reason}")
        typer.echo(SKIP_MARKER)
        return

    pr = f" (PR #{outcome.pull_request.number})" if outcome.pull_request else ""
    ctx.console.success(f"{outcome.tag} published to {outcome.target_branch}{pr}")


def publish(
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without mutating"),
    target_version: str | None = typer.Option(
        None, "--target-version", help="patch, minor, major or an explicit x.y.z[-tag.n]"
    ),
    target_branch: str | None = typer.Option(
        None, "--target-branch", help="Branch to release onto (overrides the branch policy)"
    ),
    sync_target: bool = typer.Option(
        False, "--sync-target", help="Only bring the target branch up to date, then exit"
    ),
    notes_file: Path | None = typer.Option(
        None, "--notes-file", help="Markdown file used as the release notes body"
    ),
    skip_already_published: bool = typer.Option(
        False, "--skip-already-published", help="Exit successfully if the version is published"
    ),
    force_republish: bool = typer.Option(
        False, "--force-republish", help="Delete orphan tags left by an interrupted run"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Never ask for confirmation"),
    merge_method: MergeChoice | None = typer.Option(
        None, "--merge-method", help="squash, merge or rebase"
    ),
    checks_timeout: int | None = typer.Option(
        None, "--checks-timeout", help="Seconds to wait for PR checks"
    ),
    no_wait_release_workflows: bool = typer.Option(
        False, "--no-wait-release-workflows", help="Do not wait for release workflows"
    ),
    repo: Path | None = typer.Option(None, "--repo", help="Repository root (default: cwd)"),
    config: Path | None = typer.Option(
        None, "--config", help="Config file (default: .pubflow.toml)"
    ),
) -> None:
    """Promote the current branch to a published release."""
    ctx = build_context(repo_path=repo, config_path=config, dry_run=dry_run)
    settings = ctx.config.with_overrides(
        skip_already_published=True if skip_already_published else None,
        force_republish=True if force_republish else None,
        skip_confirmations=True if yes else None,
        merge_method=merge_method.value if merge_method is not None else None,
        checks_timeout=checks_timeout,
        wait_for_release_workflows=False if no_wait_release_workflows else None,
    )

    notes = build_notes_provider(ctx.repo, notes_file)
    if isinstance(notes, Err):
        print_publish_error(notes.error, ctx.console)
        raise typer.Exit(code=publish_error_exit_code(notes.error))

    remote, registry = _collaborators(ctx)
    orchestrator = PublishOrchestrator(
        repo=ctx.repo,
        config=settings,
        remote=remote,
        registry=registry,
        console=ctx.console,
        options=PublishOptions(
            dry_run=dry_run,
            target_version=target_version,
            target_branch=target_branch,
            sync_target=sync_target,
        ),
        notes=notes.value,
        confirm=_confirm,
        env=environment(),
    )

    result = orchestrator.run()
    if isinstance(result, Err):
        print_publish_error(result.error, ctx.console)
        raise typer.Exit(code=publish_error_exit_code(result.error))

    _report(ctx, result.value)
    raise typer.Exit(code=int(ErrorCode.OK))
