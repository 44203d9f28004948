from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from pubflow.core.config import (
    CONFIG_FILE_NAME,
    PublishConfig,
    load_config,
    load_config_or_default,
)
from pubflow.core.errors import ErrorCode
from pubflow.core.result import Err
from pubflow.git.repository import Repository
from pubflow.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    repo: Repository
    config: PublishConfig
    console: ConsoleProtocol
    dry_run: bool


def build_context(
    *,
    repo_path: Path | None,
    config_path: Path | None,
    dry_run: bool,
) -> CLIContext:
    try:
        root = (repo_path or Path.cwd()).expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --repo: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    console = RichConsole()
    repo = Repository(root, console=console, dry_run=dry_run)
    if not repo.exists():
        console.error(f"not a git repository: {root}")
        raise typer.Exit(code=int(ErrorCode.PRECONDITION_ERROR))

    if config_path is not None:
        # An explicit path must exist; only the implicit default may be absent.
        path = config_path
        config_result = load_config(path)
    else:
        path = root / CONFIG_FILE_NAME
        config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        console.error(f"{config_result.error.message} ({path})")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        root=root,
        repo=repo,
        config=config_result.value,
        console=console,
        dry_run=dry_run,
    )


def environment() -> dict[str, str]:
    return dict(os.environ)
