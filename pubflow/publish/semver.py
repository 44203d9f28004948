from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

from pubflow.core.config import IncrementLevel

_IDENT = r"(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)"
_SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    rf"(?:-({_IDENT}(?:\.{_IDENT})*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

PrereleaseId = int | str


@total_ordering
@dataclass(frozen=True, slots=True)
class SemVer:
    """Semantic version with semver 2.0 precedence.

    Build metadata is accepted by ``parse_version`` and dropped.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[PrereleaseId, ...] = ()

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def base(self) -> SemVer:
        return SemVer(self.major, self.minor, self.patch)

    @property
    def prerelease_tag(self) -> str | None:
        """Leading textual identifier of the prerelease (``dev`` in ``1.0.0-dev.3``)."""
        if self.prerelease and isinstance(self.prerelease[0], str):
            return self.prerelease[0]
        return None

    def to_tag(self) -> str:
        return f"v{self}"

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        if not self.prerelease:
            return core
        return core + "-" + ".".join(str(p) for p in self.prerelease)

    def _key(self) -> tuple[object, ...]:
        # A release outranks its prereleases; numeric identifiers sort before text.
        ids = tuple((0, p, "") if isinstance(p, int) else (1, 0, p) for p in self.prerelease)
        return (self.major, self.minor, self.patch, 0 if self.prerelease else 1, ids)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def bump(self, level: IncrementLevel) -> SemVer:
        """Increment with npm semantics.

        A prerelease is finalized rather than skipped when it already sits on
        the requested boundary: ``1.0.2-dev.0`` patch -> ``1.0.2``,
        ``2.0.0-rc.1`` major -> ``2.0.0``.
        """
        pre = self.is_prerelease
        match level:
            case "major":
                if pre and self.minor == 0 and self.patch == 0:
                    return self.base
                return SemVer(self.major + 1, 0, 0)
            case "minor":
                if pre and self.patch == 0:
                    return self.base
                return SemVer(self.major, self.minor + 1, 0)
            case "patch":
                if pre:
                    return self.base
                return SemVer(self.major, self.minor, self.patch + 1)
            case _:
                raise AssertionError(f"unexpected increment level: {level}")

    def pre_bump(self, level: IncrementLevel, tag: str) -> SemVer:
        """``npm version pre<level> --preid=<tag>``: always a new base, prerelease ``tag.0``."""
        match level:
            case "major":
                base = SemVer(self.major + 1, 0, 0)
            case "minor":
                base = SemVer(self.major, self.minor + 1, 0)
            case "patch":
                base = SemVer(self.major, self.minor, self.patch + 1)
            case _:
                raise AssertionError(f"unexpected increment level: {level}")
        return base.with_prerelease(tag, 0)

    def with_prerelease(self, tag: str, number: int) -> SemVer:
        return SemVer(self.major, self.minor, self.patch, (tag, number))

    def next_prerelease(self, tag: str) -> SemVer | None:
        """Next number in the same ``tag`` series, None if not in that series."""
        if self.prerelease_tag != tag:
            return None
        last = self.prerelease[-1]
        if len(self.prerelease) > 1 and isinstance(last, int):
            return SemVer(self.major, self.minor, self.patch, (*self.prerelease[:-1], last + 1))
        return SemVer(self.major, self.minor, self.patch, (*self.prerelease, 0))


def parse_version(text: str) -> SemVer | None:
    m = _SEMVER_RE.match(text.strip())
    if m is None:
        return None
    prerelease: tuple[PrereleaseId, ...] = ()
    if m.group(4):
        prerelease = tuple(int(p) if p.isdigit() else p for p in m.group(4).split("."))
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), prerelease)
