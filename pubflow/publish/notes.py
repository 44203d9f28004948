from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pubflow.core.result import Err, Ok, Result
from pubflow.git.repository import Repository
from pubflow.publish.errors import PublishError, git_failure
from pubflow.publish.model import ReleaseNotes

_RELEASE_COMMIT_PREFIXES = ("chore: release ", "chore: bump to ")


def load_notes_file(path: Path) -> Result[str, PublishError]:
    """Read operator-written release notes (Markdown)."""
    if path.suffix.lower() not in {".md", ".markdown"}:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"--notes-file must be a Markdown file: {path}",
            )
        )
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Err(PublishError(kind="invalid_input", message=f"failed to read --notes-file: {e}"))
    if not text.strip():
        return Err(PublishError(kind="invalid_input", message=f"--notes-file is empty: {path}"))
    return Ok(text.rstrip() + "\n")


@dataclass(frozen=True, slots=True)
class GitLogNotes:
    """Release notes built from commit subjects since the previous tag.

    When ``extra`` is given (``--notes-file``) it is used as the body and
    the commit list is appended under "Commits".
    """

    repo: Repository
    extra: str | None = None

    def __call__(self, tag: str, previous_tag: str | None) -> Result[ReleaseNotes, PublishError]:
        subjects = self.repo.commit_subjects(previous_tag, tag)
        if isinstance(subjects, Err):
            return Err(git_failure(subjects.error, f"failed to collect commits for {tag}"))

        changes = [s for s in subjects.value if not s.startswith(_RELEASE_COMMIT_PREFIXES)]
        lines: list[str] = []
        if self.extra:
            lines.append(self.extra.rstrip())
            lines.append("")
            lines.append("## Commits")
        else:
            since = f" since {previous_tag}" if previous_tag else ""
            lines.append(f"## Changes{since}")
        lines.append("")
        lines.extend(f"- {s}" for s in changes)
        if not changes:
            lines.append("- No functional changes.")
        return Ok(ReleaseNotes(title=tag, body="\n".join(lines).rstrip() + "\n"))
