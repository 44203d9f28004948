from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from pubflow.core.result import Err, Ok, Result
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.platform.process import run as run_process
from pubflow.publish.errors import PublishError, PublishErrorKind
from pubflow.publish.timeouts import NPM_COMMAND_TIMEOUT_SECONDS

_OUTPUT_TAIL_LINES = 20


def _tail(text: str) -> str:
    lines = text.strip().splitlines()
    return "\n".join(lines[-_OUTPUT_TAIL_LINES:])


def run_project_command(
    cmd: Sequence[str],
    *,
    cwd: Path,
    console: ConsoleProtocol,
    dry_run: bool,
    kind: PublishErrorKind = "precondition_failed",
    timeout: float = NPM_COMMAND_TIMEOUT_SECONDS,
) -> Result[str, PublishError]:
    """Run a configured project command (install, update, preflight script)."""
    line = " ".join(cmd)
    console.print(line, Style.DIM)
    if dry_run:
        return Ok("")

    result = run_process(list(cmd), cwd=cwd, timeout=timeout)
    if isinstance(result, Err):
        error = result.error
        return Err(
            PublishError(
                kind=kind,
                message=f"{line} failed (exit {error.returncode})",
                hint=_tail(error.output) or None,
            )
        )
    return Ok(result.value)
