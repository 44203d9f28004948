"""package.json access.

Writes reproduce npm's own layout (two-space indent, trailing newline,
non-ASCII kept as-is) and keep every field and key order untouched apart
from the one being changed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from pubflow.core.result import Err, Ok, Result
from pubflow.core.structured import StrDict, as_str_dict, get_str, get_table
from pubflow.output.console import ConsoleProtocol, Style
from pubflow.platform.files import atomic_write_text
from pubflow.publish.errors import PublishError
from pubflow.publish.semver import SemVer, parse_version


@dataclass(frozen=True, slots=True)
class Manifest:
    data: StrDict

    @property
    def name(self) -> str | None:
        return get_str(self.data, "name")

    @property
    def version(self) -> str | None:
        return get_str(self.data, "version")

    def has_script(self, script: str) -> bool:
        scripts = get_table(self.data, "scripts") or {}
        return get_str(scripts, script) is not None

    def with_version(self, version: SemVer) -> Manifest:
        data = dict(self.data)
        data["version"] = str(version)
        return Manifest(data)

    def without_version(self) -> StrDict:
        return {k: v for k, v in self.data.items() if k != "version"}

    def dumps(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"


def parse_manifest(text: str, *, source: str = "package.json") -> Result[Manifest, PublishError]:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            PublishError(kind="manifest_invalid", message=f"invalid JSON in {source}: {e}")
        )
    data = as_str_dict(obj)
    if data is None:
        return Err(
            PublishError(kind="manifest_invalid", message=f"{source} must contain a JSON object")
        )
    return Ok(Manifest(data))


class JsonManifestStore:
    """Reads and writes the manifest in the working copy."""

    def __init__(
        self,
        path: Path,
        *,
        console: ConsoleProtocol | None = None,
        dry_run: bool = False,
    ) -> None:
        self.path = path
        self._console = console
        self._dry_run = dry_run

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Result[Manifest, PublishError]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Err(
                PublishError(kind="manifest_invalid", message=f"manifest not found: {self.path}")
            )
        except (OSError, UnicodeDecodeError) as e:
            return Err(
                PublishError(kind="manifest_invalid", message=f"cannot read {self.path}: {e}")
            )
        return parse_manifest(text, source=self.path.name)

    def read_version(self) -> Result[SemVer, PublishError]:
        manifest = self.read()
        if isinstance(manifest, Err):
            return manifest

        raw = manifest.value.version
        version = parse_version(raw) if raw else None
        if version is None:
            return Err(
                PublishError(
                    kind="manifest_invalid",
                    message=f"{self.path.name} has no valid version field (got {raw!r})",
                )
            )
        return Ok(version)

    def write(self, manifest: Manifest) -> Result[None, PublishError]:
        if self._console is not None:
            self._console.print(f"write {self.path.name} (version {manifest.version})", Style.DIM)
        if self._dry_run:
            return Ok(None)

        try:
            atomic_write_text(self.path, manifest.dumps())
        except OSError as e:
            return Err(
                PublishError(kind="manifest_invalid", message=f"cannot write {self.path}: {e}")
            )
        return Ok(None)

    def write_version(self, version: SemVer) -> Result[None, PublishError]:
        manifest = self.read()
        if isinstance(manifest, Err):
            return manifest
        return self.write(manifest.value.with_version(version))
