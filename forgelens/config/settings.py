"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from forgelens.git.utils import GIT_COMMAND_TIMEOUT, GitCommandRunner


class GitConfig(BaseModel):
    """Configuration for git subprocesses."""

    executable: str = "git"
    timeout: float = Field(default=GIT_COMMAND_TIMEOUT, gt=0, le=600)
    locale: Optional[str] = "C"

    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("executable cannot be empty")
        return v.strip()

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty locale as "inherit from the environment"."""
        if v is not None and not v.strip():
            return None
        return v


class PreflightConfig(BaseModel):
    """Configuration for pull request preflight checks."""

    default_base: str = "main"
    check_conflicts: bool = True
    check_behind: bool = True

    @field_validator("default_base")
    @classmethod
    def validate_default_base(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("default_base cannot be empty")
        return v.strip()


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Optional[str] = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @property
    def resolved_file(self) -> Optional[Path]:
        """Get the log file path with ~ expanded."""
        return Path(self.file).expanduser() if self.file else None


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FORGELENS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    git: GitConfig = Field(default_factory=GitConfig)
    preflight: PreflightConfig = Field(default_factory=PreflightConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; FORGELENS_* variables override them
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def create_runner(self) -> GitCommandRunner:
        """Build a git runner from the git section."""
        return GitCommandRunner(
            timeout=self.git.timeout,
            executable=self.git.executable,
            locale=self.git.locale,
        )
