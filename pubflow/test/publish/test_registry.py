from __future__ import annotations

from pathlib import Path

import pytest

from pubflow.core.result import Err, Ok, Result
from pubflow.platform.process import ProcessError
from pubflow.publish import registry as registry_mod
from pubflow.publish.registry import NpmRegistry


def _answer(monkeypatch: pytest.MonkeyPatch, result: Result[str, ProcessError]) -> list[list[str]]:
    calls: list[list[str]] = []

    def fake_run(
        cmd: list[str], cwd: Path, *, extra_env=None, timeout=None
    ) -> Result[str, ProcessError]:
        del cwd, extra_env, timeout
        calls.append(cmd)
        return result

    monkeypatch.setattr(registry_mod, "run_process", fake_run)
    return calls


def _failed(stderr: str) -> Err[ProcessError]:
    return Err(ProcessError(command=("npm", "view"), returncode=1, stdout="", stderr=stderr))


def test_published_version(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls = _answer(monkeypatch, Ok("1.4.2\n"))

    assert NpmRegistry(tmp_path).published_version("demo-package") == Ok("1.4.2")
    assert calls == [["npm", "view", "demo-package", "version"]]


def test_never_published_package(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _answer(monkeypatch, _failed("npm ERR! code E404\nnpm ERR! 404 Not Found - GET /demo-package"))

    assert NpmRegistry(tmp_path).published_version("demo-package") == Ok(None)


def test_registry_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _answer(monkeypatch, _failed("npm ERR! code ENOTFOUND"))

    result = NpmRegistry(tmp_path).published_version("demo-package")

    assert isinstance(result, Err)
    assert result.error.kind == "registry_failed"
    assert "ENOTFOUND" in (result.error.hint or "")
