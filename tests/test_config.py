"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from forgelens.config import (
    DEFAULTS_FILE,
    Settings,
    _deep_merge,
    _expand_env_vars,
    create_default_config,
    get_settings,
    load_settings,
    reset_settings,
)
from forgelens.config.settings import GitConfig, LoggingConfig, PreflightConfig
from forgelens.errors import InvalidConfigError
from forgelens.git.utils import GitCommandRunner


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_expand_simple_var(self) -> None:
        """Test expanding a simple environment variable."""
        os.environ["TEST_VAR"] = "test_value"
        result = _expand_env_vars("${TEST_VAR}")
        assert result == "test_value"
        del os.environ["TEST_VAR"]

    def test_expand_missing_var(self) -> None:
        """Test expanding a missing environment variable returns None."""
        result = _expand_env_vars("${NONEXISTENT_VAR}")
        assert result is None

    def test_expand_in_nested_dict(self) -> None:
        """Test expanding variables in nested dictionaries."""
        os.environ["NESTED_VAR"] = "develop"
        data = {"preflight": {"default_base": "${NESTED_VAR}"}}
        result = _expand_env_vars(data)
        assert result["preflight"]["default_base"] == "develop"
        del os.environ["NESTED_VAR"]

    def test_non_strings_untouched(self) -> None:
        """Test numbers and booleans pass through."""
        assert _expand_env_vars({"timeout": 30, "check": True}) == {"timeout": 30, "check": True}


class TestDeepMerge:
    """Tests for deep dictionary merging."""

    def test_nested_merge(self) -> None:
        """Test merging nested dictionaries."""
        base = {"git": {"executable": "git", "timeout": 30}}
        override = {"git": {"timeout": 5}}
        result = _deep_merge(base, override)
        assert result == {"git": {"executable": "git", "timeout": 5}}

    def test_original_not_mutated(self) -> None:
        """Test the base dictionary is left alone."""
        base = {"a": 1}
        _deep_merge(base, {"a": 2})
        assert base == {"a": 1}


class TestSettingsModels:
    """Tests for the pydantic models."""

    def test_defaults(self) -> None:
        """Test model defaults."""
        settings = Settings()
        assert settings.git.executable == "git"
        assert settings.git.timeout == 30.0
        assert settings.git.locale == "C"
        assert settings.preflight.default_base == "main"
        assert settings.logging.level == "WARNING"

    def test_timeout_must_be_positive(self) -> None:
        """Test a non-positive timeout is rejected."""
        with pytest.raises(ValidationError):
            GitConfig(timeout=0)

    def test_empty_executable_rejected(self) -> None:
        """Test the executable can't be blank."""
        with pytest.raises(ValidationError):
            GitConfig(executable="  ")

    def test_blank_locale_inherits(self) -> None:
        """Test a blank locale means no pinning."""
        assert GitConfig(locale=" ").locale is None

    def test_empty_default_base_rejected(self) -> None:
        """Test the default base branch can't be blank."""
        with pytest.raises(ValidationError):
            PreflightConfig(default_base="")

    def test_level_is_case_insensitive(self) -> None:
        """Test log levels are upper-cased."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_resolved_file_expands_home(self) -> None:
        """Test ~ is expanded in the log file path."""
        config = LoggingConfig(file="~/forgelens.log")
        assert config.resolved_file == Path.home() / "forgelens.log"
        assert LoggingConfig().resolved_file is None

    def test_create_runner(self) -> None:
        """Test the runner mirrors the git section."""
        settings = Settings(git={"executable": "/usr/bin/git", "timeout": 5, "locale": "C.UTF-8"})
        runner = settings.create_runner()
        assert runner == GitCommandRunner(timeout=5.0, executable="/usr/bin/git", locale="C.UTF-8")


class TestLoadSettings:
    """Tests for loading settings from files and the environment."""

    def test_load_defaults(self, clean_env: None) -> None:
        """Test loading with no user config."""
        settings = load_settings(force_reload=True)
        assert settings.git.timeout == 30.0
        assert settings.preflight.check_conflicts is True

    def test_user_config_overrides_defaults(self, clean_env: None, temp_dir: Path) -> None:
        """Test values from the user file win over packaged defaults."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("git:\n  timeout: 12\npreflight:\n  default_base: develop\n")

        settings = load_settings(config_path=config_path, force_reload=True)
        assert settings.git.timeout == 12.0
        assert settings.git.executable == "git"
        assert settings.preflight.default_base == "develop"

    def test_env_overrides_file(
        self, clean_env: None, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test FORGELENS_* variables win over the config file."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("git:\n  timeout: 12\n")
        monkeypatch.setenv("FORGELENS_GIT__TIMEOUT", "7")

        settings = load_settings(config_path=config_path, force_reload=True)
        assert settings.git.timeout == 7.0

    def test_env_var_references_expanded(
        self, clean_env: None, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test ${VAR} references in the file are expanded."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("preflight:\n  default_base: ${RELEASE_BRANCH}\n")
        monkeypatch.setenv("RELEASE_BRANCH", "release")

        settings = load_settings(config_path=config_path, force_reload=True)
        assert settings.preflight.default_base == "release"

    def test_invalid_value_raises(self, clean_env: None, temp_dir: Path) -> None:
        """Test validation failures become InvalidConfigError."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("git:\n  timeout: -5\n")

        with pytest.raises(InvalidConfigError) as exc_info:
            load_settings(config_path=config_path, force_reload=True)
        assert exc_info.value.details["field"] == "git.timeout"

    def test_malformed_yaml_raises(self, clean_env: None, temp_dir: Path) -> None:
        """Test unparsable YAML is reported."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("git: [unclosed\n")

        with pytest.raises(InvalidConfigError):
            load_settings(config_path=config_path, force_reload=True)

    def test_non_mapping_raises(self, clean_env: None, temp_dir: Path) -> None:
        """Test a YAML list at the top level is rejected."""
        config_path = temp_dir / "config.yaml"
        config_path.write_text("- git\n- preflight\n")

        with pytest.raises(InvalidConfigError):
            load_settings(config_path=config_path, force_reload=True)

    def test_settings_cached(self, clean_env: None) -> None:
        """Test get_settings returns the cached instance until reset."""
        first = get_settings()
        assert get_settings() is first
        reset_settings()
        assert get_settings() is not first


class TestCreateDefaultConfig:
    """Tests for writing the default config file."""

    def test_writes_defaults(self, temp_dir: Path) -> None:
        """Test the packaged defaults are copied."""
        target = temp_dir / "nested" / "config.yaml"
        path = create_default_config(target)
        assert path == target
        assert target.read_text(encoding="utf-8") == DEFAULTS_FILE.read_text(encoding="utf-8")

    def test_existing_file_kept(self, temp_dir: Path) -> None:
        """Test an existing config is never overwritten."""
        target = temp_dir / "config.yaml"
        target.write_text("git:\n  timeout: 12\n")
        create_default_config(target)
        assert target.read_text() == "git:\n  timeout: 12\n"
