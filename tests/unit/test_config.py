"""Unit tests for configuration merging."""

from pathlib import Path

import pytest

from sleepship.core.config import RunConfig, Settings, build_run_config, get_settings
from sleepship.core.exceptions import ConfigurationError

ENV_VARS = [
    "SLEEPSHIP_PROJECT_DIR",
    "SLEEPSHIP_SYNC_DEFAULT_TASK_FILE",
    "SLEEPSHIP_SYNC_MAX_RETRIES",
    "SLEEPSHIP_SYNC_LOG_DIR",
    "SLEEPSHIP_SYNC_START_FROM",
    "SLEEPSHIP_CLAUDE_FLAGS",
    "SLEEPSHIP_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path, mock_settings):
    """Remove Sleepship variables and any .env file from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, clean_env):
        """Test values without any environment."""
        settings = Settings()

        assert settings.sleepship_sync_max_retries is None
        assert settings.sleepship_sync_start_from is None
        assert settings.sleepship_log_level == "INFO"
        assert settings.claude_flags == []

    def test_reads_environment(self, clean_env):
        """Test reading every variable."""
        clean_env.setenv("SLEEPSHIP_SYNC_MAX_RETRIES", "5")
        clean_env.setenv("SLEEPSHIP_SYNC_START_FROM", "2")
        clean_env.setenv("SLEEPSHIP_SYNC_LOG_DIR", "run-logs")
        clean_env.setenv("SLEEPSHIP_CLAUDE_FLAGS", "--model, sonnet,,")

        settings = Settings()

        assert settings.sleepship_sync_max_retries == 5
        assert settings.sleepship_sync_start_from == 2
        assert settings.sleepship_sync_log_dir == "run-logs"
        assert settings.claude_flags == ["--model", "sonnet"]

    @pytest.mark.parametrize(
        "name,value",
        [
            ("SLEEPSHIP_SYNC_MAX_RETRIES", "-1"),
            ("SLEEPSHIP_SYNC_MAX_RETRIES", "many"),
            ("SLEEPSHIP_SYNC_START_FROM", "0"),
            ("SLEEPSHIP_SYNC_START_FROM", "first"),
        ],
    )
    def test_invalid_numbers_ignored(self, clean_env, name, value):
        """Test that invalid numeric variables are treated as unset."""
        clean_env.setenv(name, value)

        settings = Settings()

        assert settings.sleepship_sync_max_retries is None
        assert settings.sleepship_sync_start_from is None

    def test_get_settings_cached(self, clean_env):
        """Test the settings cache."""
        assert get_settings() is get_settings()


class TestBuildRunConfig:
    """Tests for build_run_config."""

    def test_defaults(self, clean_env, tmp_path):
        """Test defaults when only the task file is given."""
        config = build_run_config("tasks.md", settings=Settings())

        assert config.task_file == Path("tasks.md")
        assert config.project_dir == tmp_path.resolve()
        assert config.log_dir == "logs"
        assert config.start_from == 1
        assert config.max_retries == 3
        assert config.max_attempts == 4
        assert config.log_path == tmp_path.resolve() / "logs"

    def test_environment_over_defaults(self, clean_env):
        """Test that environment values replace defaults."""
        clean_env.setenv("SLEEPSHIP_SYNC_MAX_RETRIES", "7")
        clean_env.setenv("SLEEPSHIP_SYNC_START_FROM", "3")

        config = build_run_config("tasks.md", settings=Settings())

        assert config.max_retries == 7
        assert config.start_from == 3

    def test_cli_over_environment(self, clean_env, tmp_path):
        """Test that CLI values win over the environment."""
        clean_env.setenv("SLEEPSHIP_SYNC_MAX_RETRIES", "7")
        clean_env.setenv("SLEEPSHIP_SYNC_LOG_DIR", "env-logs")
        project = tmp_path / "project"

        config = build_run_config(
            "tasks.md",
            settings=Settings(),
            project_dir=project,
            log_dir="cli-logs",
            max_retries=0,
        )

        assert config.max_retries == 0
        assert config.log_dir == "cli-logs"
        assert config.project_dir == project.resolve()

    def test_default_task_file_from_environment(self, clean_env):
        """Test SLEEPSHIP_SYNC_DEFAULT_TASK_FILE."""
        clean_env.setenv("SLEEPSHIP_SYNC_DEFAULT_TASK_FILE", "tasks-default.md")

        config = build_run_config(None, settings=Settings())

        assert config.task_file == Path("tasks-default.md")

    def test_missing_task_file(self, clean_env):
        """Test that a run needs a task file."""
        with pytest.raises(ConfigurationError):
            build_run_config(None, settings=Settings())

    def test_invalid_cli_value(self, clean_env):
        """Test that invalid CLI values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            build_run_config("tasks.md", settings=Settings(), start_from=0)

    def test_overrides(self, clean_env):
        """Test passing other RunConfig fields."""
        clean_env.setenv("SLEEPSHIP_CLAUDE_FLAGS", "--verbose")

        config = build_run_config("tasks.md", settings=Settings(), create_branch=False)

        assert config.create_branch is False
        assert config.claude_flags == ("--verbose",)

    def test_run_config_is_frozen(self, tmp_path):
        """Test that RunConfig cannot be modified."""
        config = RunConfig(task_file=Path("t.md"), project_dir=tmp_path)

        with pytest.raises(Exception):
            config.max_retries = 10
