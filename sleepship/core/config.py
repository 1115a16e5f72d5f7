"""Configuration management using Pydantic Settings.

Values are merged with the priority CLI flags > environment variables >
defaults, and the result is frozen into a ``RunConfig`` that is passed
explicitly through the engine.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sleepship.core.exceptions import ConfigurationError

DEFAULT_LOG_DIR = "logs"
DEFAULT_MAX_RETRIES = 3
DEFAULT_START_FROM = 1
DEFAULT_MAX_DEPTH = 3


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    sleepship_project_dir: str | None = Field(
        default=None,
        description="Project directory",
    )
    sleepship_sync_default_task_file: str | None = Field(
        default=None,
        description="Task file used when none is given on the command line",
    )
    sleepship_sync_max_retries: int | None = Field(
        default=None,
        description="Maximum number of retries per phase",
    )
    sleepship_sync_log_dir: str | None = Field(
        default=None,
        description="Log directory, relative to the project directory",
    )
    sleepship_sync_start_from: int | None = Field(
        default=None,
        description="1-based task number to start from",
    )
    sleepship_claude_flags: str | None = Field(
        default=None,
        description="Extra claude CLI flags (comma-separated)",
    )
    sleepship_log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("sleepship_sync_max_retries", mode="before")
    @classmethod
    def _non_negative_or_unset(cls, v: Any) -> int | None:
        return _parse_int(v, minimum=0)

    @field_validator("sleepship_sync_start_from", mode="before")
    @classmethod
    def _positive_or_unset(cls, v: Any) -> int | None:
        return _parse_int(v, minimum=1)

    @field_validator("sleepship_project_dir", "sleepship_sync_log_dir", "sleepship_sync_default_task_file", mode="before")
    @classmethod
    def _blank_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def claude_flags(self) -> list[str]:
        """Claude flags split on commas, empty entries dropped."""
        if not self.sleepship_claude_flags:
            return []
        return [flag.strip() for flag in self.sleepship_claude_flags.split(",") if flag.strip()]


def _parse_int(value: Any, minimum: int) -> int | None:
    """Parse an integer setting, treating invalid values as unset."""
    if value is None:
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number >= minimum else None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.sleepship_log_level
        'INFO'
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()


# =============================================================================
# RUN CONFIGURATION
# =============================================================================


class RunConfig(BaseModel):
    """Explicit configuration for one run of a task document."""

    model_config = ConfigDict(frozen=True)

    task_file: Path
    project_dir: Path
    log_dir: str = Field(default=DEFAULT_LOG_DIR, min_length=1)
    start_from: int = Field(default=DEFAULT_START_FROM, ge=1)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    claude_path: str | None = None
    claude_flags: tuple[str, ...] = ()
    create_branch: bool = True
    commit_changes: bool = True
    log_level: str = "INFO"

    @property
    def log_path(self) -> Path:
        """Absolute directory that receives run logs."""
        return self.project_dir / self.log_dir

    @property
    def max_attempts(self) -> int:
        """Attempts allowed per phase: the first try plus every retry."""
        return self.max_retries + 1


def build_run_config(
    task_file: str | Path | None,
    settings: Settings | None = None,
    project_dir: str | Path | None = None,
    log_dir: str | None = None,
    start_from: int | None = None,
    max_retries: int | None = None,
    **overrides: Any,
) -> RunConfig:
    """
    Merge CLI values, environment settings and defaults into a RunConfig.

    A CLI value of ``None`` means the flag was not given.

    Args:
        task_file: Task document path from the command line.
        settings: Environment settings (cached settings if omitted).
        project_dir: ``--dir`` value.
        log_dir: ``--log-dir`` value.
        start_from: ``--start-from`` value.
        max_retries: ``--max-retries`` value.
        **overrides: Any other RunConfig field.

    Returns:
        Frozen RunConfig.

    Raises:
        ConfigurationError: If no task file is known or a value is invalid.
    """
    settings = settings or get_settings()

    if max_retries is None and settings.sleepship_sync_max_retries is not None:
        logger.info(f"Using max-retries from environment: {settings.sleepship_sync_max_retries}")
    if start_from is None and settings.sleepship_sync_start_from is not None:
        logger.info(f"Using start-from from environment: {settings.sleepship_sync_start_from}")
    if log_dir is None and settings.sleepship_sync_log_dir is not None:
        logger.info(f"Using log-dir from environment: {settings.sleepship_sync_log_dir}")
    if project_dir is None and settings.sleepship_project_dir is not None:
        logger.info(f"Using project directory from environment: {settings.sleepship_project_dir}")

    task = _first(task_file, settings.sleepship_sync_default_task_file)
    if task is None:
        raise ConfigurationError("No task file given and SLEEPSHIP_SYNC_DEFAULT_TASK_FILE is not set")

    directory = Path(_first(project_dir, settings.sleepship_project_dir, Path.cwd())).resolve()

    overrides.setdefault("claude_flags", tuple(settings.claude_flags))
    overrides.setdefault("log_level", settings.sleepship_log_level)

    try:
        return RunConfig(
            task_file=Path(task),
            project_dir=directory,
            log_dir=_first(log_dir, settings.sleepship_sync_log_dir, DEFAULT_LOG_DIR),
            start_from=_first(start_from, settings.sleepship_sync_start_from, DEFAULT_START_FROM),
            max_retries=_first(max_retries, settings.sleepship_sync_max_retries, DEFAULT_MAX_RETRIES),
            **overrides,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None
