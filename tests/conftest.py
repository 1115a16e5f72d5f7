"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from sleepship.core.config import RunConfig, clear_settings_cache
from sleepship.sessions.base import ProcessResult

# Nested-run depth must not leak in from a surrounding sleepship run
os.environ.pop("SLEEPSHIP_DEPTH", None)


SAMPLE_DOCUMENT = """# Task file

Intro text before the first task is ignored.

---

## Task1: Create user model

Add a User struct with ID and Name fields.

### Prerequisites
- `go version`

### Verify
- `test -f user.go`

---

## Task2: Add user handler

### Dependencies
- 1

### Steps
Expose GET /users.
- `test -f handler.go`
"""


@pytest.fixture
def mock_settings() -> Generator:
    """Clear cached settings around a test."""
    clear_settings_cache()

    yield

    clear_settings_cache()


@pytest.fixture
def sample_document() -> str:
    """Provide a two-task document."""
    return SAMPLE_DOCUMENT


@pytest.fixture
def task_file(tmp_path: Path, sample_document: str) -> Path:
    """Write the sample document into a temporary project."""
    path = tmp_path / "tasks-user-api.md"
    path.write_text(sample_document, encoding="utf-8")
    return path


@pytest.fixture
def make_config(tmp_path: Path, task_file: Path) -> Callable[..., RunConfig]:
    """Build a RunConfig for the temporary project."""

    def factory(**overrides) -> RunConfig:
        values = {
            "task_file": task_file,
            "project_dir": tmp_path,
            "max_retries": 2,
        }
        values.update(overrides)
        return RunConfig(**values)

    return factory


@pytest.fixture
def make_result() -> Callable[..., ProcessResult]:
    """Build a finished ProcessResult."""

    def factory(return_code: int = 0, output: str = "", error: str | None = None) -> ProcessResult:
        return ProcessResult(args=["fake"], return_code=return_code, output=output, error=error)

    return factory


@pytest.fixture
def mock_agent(make_result) -> MagicMock:
    """Provide an agent session that always succeeds."""
    agent = MagicMock()
    agent.run = AsyncMock(return_value=make_result(output="SUCCESS: this task succeeded"))
    return agent


@pytest.fixture
def mock_shell(make_result) -> MagicMock:
    """Provide a shell session whose commands always pass."""
    shell = MagicMock()
    shell.run = AsyncMock(return_value=make_result(output="ok"))
    return shell


@pytest.fixture
def mock_git() -> MagicMock:
    """Provide a git repository that accepts every branch and commit."""
    git = MagicMock()
    git.create_branch = AsyncMock(return_value=None)
    git.commit_all = AsyncMock(return_value=True)
    return git


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
