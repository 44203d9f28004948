"""Typed configuration for a publish run.

The configuration lives in ``.pubflow.toml`` at the repository root:

    [publish]
    target_branch = "main"
    merge_method = "squash"
    checks_timeout = 3600
    required_env_vars = ["NPM_TOKEN"]

    [commands]
    install = ["npm", "install"]

    [branches.working]
    target_branch = "main"
    version_tag = "dev"

    [branches.main]
    increment_level = "patch"

Every value has a default, so a repository without the file still works.
CLI flags override file values (see ``PublishConfig.with_overrides``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal, cast

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_str, get_str_list, get_table

__all__ = [
    "BranchRule",
    "CommandsConfig",
    "ConfigError",
    "CONFIG_FILE_NAME",
    "IncrementLevel",
    "MergeMethod",
    "PublishConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = ".pubflow.toml"

IncrementLevel = Literal["patch", "minor", "major"]
MergeMethod = Literal["squash", "merge", "rebase"]

_INCREMENT_LEVELS: tuple[IncrementLevel, ...] = ("patch", "minor", "major")
_MERGE_METHODS: tuple[MergeMethod, ...] = ("squash", "merge", "rebase")

DEFAULT_TARGET_BRANCH = "main"
DEFAULT_CHECKS_TIMEOUT_SECONDS = 60 * 60
DEFAULT_RELEASE_WORKFLOWS_TIMEOUT_SECONDS = 30 * 60


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class BranchRule:
    """Release policy attached to one branch name.

    Attributes:
        target_branch: Branch that releases from this branch merge into.
        version_tag: Prerelease tag for versions living on this branch
            (``dev``, ``rc``...). None means the branch carries releases.
        increment_level: Component bumped when deriving a version.
    """

    target_branch: str | None = None
    version_tag: str | None = None
    increment_level: IncrementLevel = "patch"


@dataclass(frozen=True, slots=True)
class CommandsConfig:
    """External commands run by the orchestrator (argv form, never a shell)."""

    install: tuple[str, ...] = ("npm", "install")
    update: tuple[str, ...] = ("npm", "update")
    preflight: tuple[str, ...] | None = None

    def preflight_for(self, script: str) -> tuple[str, ...]:
        if self.preflight is not None:
            return self.preflight
        return ("npm", "run", script)


def _empty_branches() -> dict[str, BranchRule]:
    return {}


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Main configuration container."""

    target_branch: str = DEFAULT_TARGET_BRANCH
    manifest: str = "package.json"
    preflight_script: str = "prepublishOnly"
    merge_method: MergeMethod = "squash"
    checks_timeout: int = DEFAULT_CHECKS_TIMEOUT_SECONDS
    release_workflows_timeout: int = DEFAULT_RELEASE_WORKFLOWS_TIMEOUT_SECONDS
    wait_for_release_workflows: bool = True
    release_workflow_names: tuple[str, ...] = ()
    required_env_vars: tuple[str, ...] = ()
    dependency_update_patterns: tuple[str, ...] = ()
    skip_already_published: bool = False
    force_republish: bool = False
    skip_confirmations: bool = False
    close_milestones: bool = True
    commands: CommandsConfig = field(default_factory=CommandsConfig)
    branches: dict[str, BranchRule] = field(default_factory=_empty_branches)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PublishConfig:
        """Create config from parsed TOML.

        Raises:
            ValueError: On values outside their allowed set.
        """
        publish: StrDict = get_table(data, "publish") or {}
        commands: StrDict = get_table(data, "commands") or {}
        branches: StrDict = get_table(data, "branches") or {}

        merge_method = get_str(publish, "merge_method") or "squash"
        if merge_method not in _MERGE_METHODS:
            raise ValueError(
                f"publish.merge_method must be one of {', '.join(_MERGE_METHODS)}, "
                f"got {merge_method!r}"
            )

        rules: dict[str, BranchRule] = {}
        for name, raw in branches.items():
            table = as_str_dict(raw)
            if table is None:
                raise ValueError(f"branches.{name} must be a table")
            rules[name] = _parse_branch_rule(name, table)

        preflight = get_str_list(commands, "preflight")
        return cls(
            target_branch=get_str(publish, "target_branch") or DEFAULT_TARGET_BRANCH,
            manifest=get_str(publish, "manifest") or "package.json",
            preflight_script=get_str(publish, "preflight_script") or "prepublishOnly",
            merge_method=cast(MergeMethod, merge_method),
            checks_timeout=_positive(publish, "checks_timeout", DEFAULT_CHECKS_TIMEOUT_SECONDS),
            release_workflows_timeout=_positive(
                publish, "release_workflows_timeout", DEFAULT_RELEASE_WORKFLOWS_TIMEOUT_SECONDS
            ),
            wait_for_release_workflows=_flag(publish, "wait_for_release_workflows", True),
            release_workflow_names=tuple(get_str_list(publish, "release_workflow_names") or []),
            required_env_vars=tuple(get_str_list(publish, "required_env_vars") or []),
            dependency_update_patterns=tuple(
                get_str_list(publish, "dependency_update_patterns") or []
            ),
            skip_already_published=_flag(publish, "skip_already_published", False),
            force_republish=_flag(publish, "force_republish", False),
            skip_confirmations=_flag(publish, "skip_confirmations", False),
            close_milestones=_flag(publish, "close_milestones", True),
            commands=CommandsConfig(
                install=tuple(get_str_list(commands, "install") or ("npm", "install")),
                update=tuple(get_str_list(commands, "update") or ("npm", "update")),
                preflight=tuple(preflight) if preflight else None,
            ),
            branches=rules,
        )

    def rule_for(self, branch: str) -> BranchRule | None:
        return self.branches.get(branch)

    def with_overrides(self, **changes: object) -> PublishConfig:
        """Return a copy with the non-None values of ``changes`` applied."""
        applied = {k: v for k, v in changes.items() if v is not None}
        if not applied:
            return self
        return replace(self, **applied)  # type: ignore[arg-type]


def _parse_branch_rule(name: str, table: StrDict) -> BranchRule:
    level = get_str(table, "increment_level") or "patch"
    if level not in _INCREMENT_LEVELS:
        raise ValueError(
            f"branches.{name}.increment_level must be one of "
            f"{', '.join(_INCREMENT_LEVELS)}, got {level!r}"
        )
    return BranchRule(
        target_branch=get_str(table, "target_branch"),
        version_tag=get_str(table, "version_tag"),
        increment_level=cast(IncrementLevel, level),
    )


def _positive(table: StrDict, key: str, default: int) -> int:
    value = get_int(table, key)
    if value is None:
        return default
    if value <= 0:
        raise ValueError(f"publish.{key} must be positive, got {value}")
    return value


def _flag(table: StrDict, key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[PublishConfig, ConfigError]:
    """Load and validate configuration from a TOML file."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(PublishConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[PublishConfig, ConfigError]:
    """Like load_config, but a missing file yields the default config.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(PublishConfig())
    return load_config(path)
