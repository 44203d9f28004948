"""Temporary git repositories for tests: a bare ``origin`` plus working clones."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        raise AssertionError(f"git {' '.join(args)} failed: {proc.stderr or proc.stdout}")
    return proc.stdout.strip()


def manifest_text(version: str, **extra: object) -> str:
    data: dict[str, object] = {
        "name": "demo-package",
        "version": version,
        "scripts": {"prepublishOnly": "echo ok"},
    }
    data.update(extra)
    return json.dumps(data, indent=2) + "\n"


@dataclass
class GitSandbox:
    origin: Path
    work: Path

    def git(self, *args: str) -> str:
        return git(self.work, *args)

    def write(self, rel: str, text: str) -> None:
        path = self.work / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def write_manifest(self, version: str, **extra: object) -> None:
        self.write("package.json", manifest_text(version, **extra))

    def commit_all(self, message: str) -> str:
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD")

    def head(self, ref: str = "HEAD") -> str:
        return self.git("rev-parse", ref)

    def origin_sha(self, ref: str) -> str:
        return git(self.origin, "rev-parse", ref)

    def origin_has(self, ref: str) -> bool:
        proc = subprocess.run(
            ["git", "rev-parse", "--verify", "--quiet", ref],
            cwd=str(self.origin),
            capture_output=True,
            text=True,
            check=False,
        )
        return proc.returncode == 0

    def clone(self, name: str) -> Path:
        path = self.work.parent / name
        git(self.work.parent, "clone", "-q", str(self.origin), str(path))
        return path

    def version_at(self, ref: str) -> str:
        data = json.loads(self.git("show", f"{ref}:package.json"))
        return str(data["version"])


def make_sandbox(base: Path, *, branch: str = "working") -> GitSandbox:
    """Bare origin and a clone with one commit on ``branch``, pushed."""
    origin = base / "origin.git"
    work = base / "work"
    git(base, "init", "-q", "--bare", "-b", branch, str(origin))
    git(base, "init", "-q", "-b", branch, str(work))
    sandbox = GitSandbox(origin=origin, work=work)
    sandbox.git("remote", "add", "origin", str(origin))
    sandbox.write_manifest("1.0.0")
    sandbox.write("index.js", "module.exports = 1;\n")
    sandbox.write(".gitignore", "node_modules/\npackage-lock.json\n")
    sandbox.commit_all("initial commit")
    sandbox.git("push", "-q", "-u", "origin", branch)
    return sandbox
