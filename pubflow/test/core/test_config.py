"""Tests for pubflow.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from pubflow.core.config import (
    BranchRule,
    CommandsConfig,
    ConfigError,
    PublishConfig,
    load_config,
    load_config_or_default,
)
from pubflow.core.result import Err, Ok


class TestPublishConfig:
    """Test PublishConfig defaults and structure."""

    def test_defaults(self) -> None:
        config = PublishConfig()
        assert config.target_branch == "main"
        assert config.manifest == "package.json"
        assert config.preflight_script == "prepublishOnly"
        assert config.merge_method == "squash"
        assert config.wait_for_release_workflows is True
        assert config.branches == {}

    def test_frozen(self) -> None:
        config = PublishConfig()
        with pytest.raises(AttributeError):
            config.target_branch = "other"  # type: ignore[misc]

    def test_rule_for_unknown_branch(self) -> None:
        assert PublishConfig().rule_for("feature") is None

    def test_with_overrides_ignores_none(self) -> None:
        config = PublishConfig()
        assert config.with_overrides(merge_method=None) is config

    def test_with_overrides_applies_values(self) -> None:
        config = PublishConfig().with_overrides(merge_method="merge", force_republish=True)
        assert config.merge_method == "merge"
        assert config.force_republish is True
        assert config.skip_already_published is False


class TestCommandsConfig:
    def test_preflight_defaults_to_npm_run(self) -> None:
        assert CommandsConfig().preflight_for("prepublishOnly") == (
            "npm",
            "run",
            "prepublishOnly",
        )

    def test_explicit_preflight(self) -> None:
        commands = CommandsConfig(preflight=("make", "check"))
        assert commands.preflight_for("prepublishOnly") == ("make", "check")


class TestFromDict:
    """Test PublishConfig.from_dict parsing."""

    def test_empty_dict(self) -> None:
        assert PublishConfig.from_dict({}) == PublishConfig()

    def test_full_document(self) -> None:
        config = PublishConfig.from_dict(
            {
                "publish": {
                    "target_branch": "stable",
                    "merge_method": "rebase",
                    "checks_timeout": 120,
                    "required_env_vars": ["NPM_TOKEN"],
                    "dependency_update_patterns": ["@scope/*"],
                    "skip_confirmations": True,
                },
                "commands": {"install": ["pnpm", "install"], "preflight": ["pnpm", "test"]},
                "branches": {
                    "working": {"target_branch": "stable", "version_tag": "dev"},
                    "next": {"target_branch": "beta", "increment_level": "minor"},
                },
            }
        )
        assert config.target_branch == "stable"
        assert config.merge_method == "rebase"
        assert config.checks_timeout == 120
        assert config.required_env_vars == ("NPM_TOKEN",)
        assert config.dependency_update_patterns == ("@scope/*",)
        assert config.skip_confirmations is True
        assert config.commands.install == ("pnpm", "install")
        assert config.commands.update == ("npm", "update")
        assert config.commands.preflight == ("pnpm", "test")
        assert config.branches["working"] == BranchRule(target_branch="stable", version_tag="dev")
        assert config.branches["next"].increment_level == "minor"

    def test_invalid_merge_method(self) -> None:
        with pytest.raises(ValueError, match="merge_method"):
            PublishConfig.from_dict({"publish": {"merge_method": "octopus"}})

    def test_invalid_increment_level(self) -> None:
        with pytest.raises(ValueError, match="increment_level"):
            PublishConfig.from_dict({"branches": {"working": {"increment_level": "huge"}}})

    def test_non_positive_timeout(self) -> None:
        with pytest.raises(ValueError, match="checks_timeout"):
            PublishConfig.from_dict({"publish": {"checks_timeout": 0}})

    def test_branch_must_be_table(self) -> None:
        with pytest.raises(ValueError, match="branches.working"):
            PublishConfig.from_dict({"branches": {"working": "main"}})


class TestLoadConfig:
    """Test load_config function."""

    def test_load_valid(self, tmp_path: Path) -> None:
        path = tmp_path / ".pubflow.toml"
        path.write_text(
            '[publish]\ntarget_branch = "release"\n\n[branches.dev]\nversion_tag = "dev"\n',
            encoding="utf-8",
        )
        result = load_config(path)
        assert isinstance(result, Ok)
        assert result.value.target_branch == "release"
        assert result.value.branches["dev"].version_tag == "dev"

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "missing.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / ".pubflow.toml"
        path.write_text("[publish\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert isinstance(result.error, ConfigError)
        assert "TOML" in result.error.message

    def test_invalid_structure(self, tmp_path: Path) -> None:
        path = tmp_path / ".pubflow.toml"
        path.write_text('[publish]\nmerge_method = "octopus"\n', encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid config structure" in result.error.message

    def test_or_default_missing_file(self, tmp_path: Path) -> None:
        result = load_config_or_default(tmp_path / "missing.toml")
        assert isinstance(result, Ok)
        assert result.value == PublishConfig()

    def test_or_default_invalid_file_is_error(self, tmp_path: Path) -> None:
        path = tmp_path / ".pubflow.toml"
        path.write_text("not toml at all [", encoding="utf-8")
        assert isinstance(load_config_or_default(path), Err)
