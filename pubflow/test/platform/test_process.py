"""Tests for pubflow.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from pubflow.core.result import Err, Ok
from pubflow.platform.process import NON_INTERACTIVE_ENV, ProcessError, child_environment, run


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert result.value.strip() == "hello"

    def test_failure_carries_streams(self, tmp_path: Path) -> None:
        code = "import sys; print('out'); print('bad', file=sys.stderr); sys.exit(8)"
        result = run([sys.executable, "-c", code], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 8
        assert result.error.stdout.strip() == "out"
        assert "bad" in result.error.stderr

    def test_missing_binary(self, tmp_path: Path) -> None:
        result = run(["definitely-not-a-real-binary-pubflow"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1

    def test_timeout(self, tmp_path: Path) -> None:
        cmd = [sys.executable, "-c", "import time; time.sleep(5)"]
        result = run(cmd, cwd=tmp_path, timeout=0.2)
        assert isinstance(result, Err)
        assert "timed out" in result.error.stderr

    def test_prompts_are_disabled(self, tmp_path: Path) -> None:
        code = "import os; print(os.environ['GIT_TERMINAL_PROMPT'], os.environ['EXTRA'])"
        result = run([sys.executable, "-c", code], cwd=tmp_path, extra_env={"EXTRA": "yes"})
        assert result == Ok("0 yes\n")


class TestChildEnvironment:
    def test_extra_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PUBFLOW_SENTINEL", "kept")
        env = child_environment({"GIT_TERMINAL_PROMPT": "1"})
        assert env["PUBFLOW_SENTINEL"] == "kept"
        assert env["GIT_TERMINAL_PROMPT"] == "1"
        assert env["GH_PROMPT_DISABLED"] == NON_INTERACTIVE_ENV["GH_PROMPT_DISABLED"]


class TestProcessError:
    def test_output_combines_streams(self) -> None:
        error = ProcessError(command=("gh", "pr"), returncode=1, stdout="b", stderr="a")
        assert error.output == "a\nb"

    def test_str_truncates_command(self) -> None:
        error = ProcessError(
            command=("git", "push", "origin", "main"), returncode=1, stdout="", stderr=""
        )
        assert str(error) == "git push origin ... failed (exit 1)"
