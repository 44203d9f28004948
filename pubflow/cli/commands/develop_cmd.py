from __future__ import annotations

from pathlib import Path

import typer

from pubflow.cli.context import build_context
from pubflow.core.result import Err
from pubflow.output.errors import print_publish_error, publish_error_exit_code
from pubflow.publish.development import start_development


def develop(
    target_version: str | None = typer.Option(
        None, "--target-version", help="patch, minor, major or an explicit x.y.z[-tag.n]"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without mutating"),
    repo: Path | None = typer.Option(None, "--repo", help="Repository root (default: cwd)"),
    config: Path | None = typer.Option(
        None, "--config", help="Config file (default: .pubflow.toml)"
    ),
) -> None:
    """Go back to the working branch and bump to the next development version."""
    ctx = build_context(repo_path=repo, config_path=config, dry_run=dry_run)
    result = start_development(
        ctx.repo,
        ctx.config,
        console=ctx.console,
        requested=target_version,
        dry_run=dry_run,
    )
    if isinstance(result, Err):
        print_publish_error(result.error, ctx.console)
        raise typer.Exit(code=publish_error_exit_code(result.error))
