"""Subprocess execution with Result-based error handling.

Commands are always given in argv form; nothing goes through a shell.
Children never get to prompt: a publish run is unattended once started, so
git and gh run with their interactive prompts disabled.

Usage:
    result = run(["git", "rev-parse", "HEAD"], cwd=repo_root, timeout=30)
    match result:
        case Ok(stdout):
            sha = stdout.strip()
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pubflow.core.result import Err, Ok, Result

__all__ = ["NON_INTERACTIVE_ENV", "ProcessError", "child_environment", "run"]

NON_INTERACTIVE_ENV: Mapping[str, str] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GH_PROMPT_DISABLED": "1",
    "GIT_MERGE_AUTOEDIT": "no",
}


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that exited non-zero, timed out or could not start.

    ``returncode`` is -1 when the process never produced an exit status.
    ``stdout`` is kept because some tools report status there (``gh pr
    checks`` lists failing checks on stdout and exits 1).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """Combined stderr/stdout, the form used for message matching."""
        return f"{self.stderr}\n{self.stdout}".strip()

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"


def child_environment(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Current environment with prompts disabled, then ``extra`` on top."""
    env = dict(os.environ)
    env.update(NON_INTERACTIVE_ENV)
    if extra:
        env.update(extra)
    return env


def run(
    cmd: list[str],
    cwd: Path,
    *,
    extra_env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run ``cmd`` in ``cwd`` and return its stdout.

    Exit code 0 is the only success. A timeout or a missing executable is
    reported as a ``ProcessError`` with ``returncode == -1``.
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=child_environment(extra_env),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(command, -1, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(command, -1, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, proc.stdout, proc.stderr))
    return Ok(proc.stdout)
