"""Next-version resolution.

Pure functions: the same inputs always give the same proposed version and
target branch. Nothing here reads the clock, the repository or the network.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import cast

from pubflow.core.config import BranchRule, IncrementLevel
from pubflow.core.result import Err, Ok, Result
from pubflow.publish.errors import PublishError
from pubflow.publish.model import VersionState
from pubflow.publish.semver import SemVer, parse_version

_LEVELS = ("patch", "minor", "major")
_LITERAL_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-([0-9A-Za-z-]+)\.(0|[1-9]\d*))?$"
)

DEFAULT_DEV_TAG = "dev"


@dataclass(frozen=True, slots=True)
class VersionResolution:
    version: VersionState
    target_branch: str
    policy_applied: bool


def parse_version_spec(spec: str) -> Result[IncrementLevel | SemVer, PublishError]:
    """Parse an operator-supplied ``patch|minor|major|x.y.z[-tag.n]``."""
    text = spec.strip()
    if text in _LEVELS:
        return Ok(cast(IncrementLevel, text))

    version = parse_version(text) if _LITERAL_RE.match(text) is not None else None
    if version is None:
        return Err(
            PublishError(
                kind="invalid_version_spec",
                message=f"invalid target version: {spec!r}",
                hint="Expected patch, minor, major or MAJOR.MINOR.PATCH[-TAG.N]",
            )
        )
    return Ok(version)


def version_for_target_rule(current: SemVer, rule: BranchRule) -> SemVer:
    """Version a release onto a branch governed by ``rule`` should carry."""
    tag = rule.version_tag
    if tag is None:
        return current.bump(rule.increment_level)

    following = current.next_prerelease(tag)
    if following is not None:
        return following
    if current.is_prerelease:
        return current.base.with_prerelease(tag, 0)
    return current.pre_bump(rule.increment_level, tag)


def resolve_target_branch(
    current_branch: str,
    branches: dict[str, BranchRule],
    *,
    default_target: str,
    override: str | None = None,
) -> str:
    """Operator override, else the source branch policy, else the default."""
    if override:
        return override
    rule = branches.get(current_branch)
    if rule is not None and rule.target_branch:
        return rule.target_branch
    return default_target


def resolve_version(
    current: SemVer,
    current_branch: str,
    branches: dict[str, BranchRule],
    *,
    default_target: str,
    requested: str | None = None,
    target_override: str | None = None,
) -> Result[VersionResolution, PublishError]:
    """Resolve the proposed version and the branch it is promoted onto.

    Args:
        current: Version in the source branch manifest.
        current_branch: Branch the run started from.
        branches: Branch policy.
        default_target: Target branch when the source branch has no policy entry.
        requested: Operator-supplied level or literal; overrides the policy version.
        target_override: Operator-supplied target branch; overrides the policy target.
    """
    explicit: IncrementLevel | SemVer | None = None
    if requested is not None:
        parsed = parse_version_spec(requested)
        if isinstance(parsed, Err):
            return parsed
        explicit = parsed.value

    source_rule = branches.get(current_branch)
    target_branch = resolve_target_branch(
        current_branch, branches, default_target=default_target, override=target_override
    )
    if isinstance(explicit, SemVer):
        proposed = explicit
    elif explicit is not None:
        proposed = current.bump(explicit)
    elif source_rule is not None:
        # Derived from the target branch rule, not the source rule.
        proposed = version_for_target_rule(current, branches.get(target_branch, BranchRule()))
    else:
        proposed = current.bump("patch")

    if not proposed > current:
        return Err(
            PublishError(
                kind="invalid_version_spec",
                message=f"proposed version {proposed} does not exceed current {current}",
                hint="Pass a higher --target-version",
            )
        )

    return Ok(
        VersionResolution(
            version=VersionState(
                current=current,
                proposed=proposed,
                is_prerelease=proposed.is_prerelease,
            ),
            target_branch=target_branch,
            policy_applied=source_rule is not None,
        )
    )


def development_version(
    current: SemVer,
    source_rule: BranchRule | None,
    *,
    level: IncrementLevel | None = None,
) -> SemVer:
    """Next development version for a working branch after a release."""
    tag = DEFAULT_DEV_TAG
    rule_level: IncrementLevel = "patch"
    if source_rule is not None:
        tag = source_rule.version_tag or DEFAULT_DEV_TAG
        rule_level = source_rule.increment_level
    return current.pre_bump(level or rule_level, tag)
