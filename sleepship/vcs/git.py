"""Git integration - one branch per run, one commit per completed task."""

import re
from datetime import datetime
from pathlib import Path

from loguru import logger

from sleepship.core.exceptions import BranchOrCommitError
from sleepship.sessions.base import ProcessResult, run_process

BRANCH_PREFIX = "feature/"
MAX_BRANCH_LENGTH = 50

_STRIP_SUFFIXES = (".txt", ".md")
_STRIP_PREFIXES = ("tasks-", "task-")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_INVALID_CHARS = re.compile(r"[^a-z0-9-]+")
_REPEATED_HYPHENS = re.compile(r"-+")


def sanitize_branch_name(name: str, now: datetime | None = None) -> str:
    """
    Turn a task file name into a branch-name component.

    Args:
        name: File name (not a path).
        now: Clock used for the fallback name.

    Returns:
        Lowercase kebab-case name of at most 50 characters, or
        ``sync-YYYYmmdd-HHMMSS`` when nothing usable remains.

    Example:
        >>> sanitize_branch_name("tasks-addUserAuth.md")
        'add-user-auth'
    """
    for suffix in _STRIP_SUFFIXES:
        name = name.removesuffix(suffix)
    for prefix in _STRIP_PREFIXES:
        name = name.removeprefix(prefix)

    name = _CAMEL_BOUNDARY.sub(r"\1-\2", name)
    name = name.lower()
    name = _INVALID_CHARS.sub("-", name)
    name = _REPEATED_HYPHENS.sub("-", name)
    name = name.strip("-")

    if len(name) > MAX_BRANCH_LENGTH:
        name = name[:MAX_BRANCH_LENGTH].strip("-")

    if not name:
        name = f"sync-{(now or datetime.now()):%Y%m%d-%H%M%S}"

    return name


def branch_name_for(task_file: str | Path, now: datetime | None = None) -> str:
    """Full branch name for a run of ``task_file``."""
    return BRANCH_PREFIX + sanitize_branch_name(Path(task_file).name, now=now)


class GitRepository:
    """
    Thin async wrapper over the git CLI for a project directory.

    Example:
        >>> repo = GitRepository("/path/to/project")
        >>> await repo.create_branch("feature/add-user-auth")
        >>> await repo.commit_all("Task 1: Add user model")
        True
    """

    def __init__(self, project_dir: str | Path, git_path: str = "git") -> None:
        self.project_dir = Path(project_dir)
        self.git_path = git_path

    async def _git(self, *args: str) -> ProcessResult:
        result = await run_process([self.git_path, *args], cwd=self.project_dir)
        if result.output:
            logger.debug(f"git {' '.join(args)}:\n{result.output.rstrip()}")
        return result

    async def create_branch(self, name: str) -> None:
        """
        Create and check out a new branch.

        Raises:
            BranchOrCommitError: If git refuses or cannot be started.
        """
        logger.info(f"Creating branch: {name}")
        result = await self._git("checkout", "-b", name)
        if not result.success:
            raise BranchOrCommitError(
                f"failed to create branch {name}: {result.describe_failure()}\nOutput: {result.output}"
            )
        logger.info(f"Branch created: {name}")

    async def commit_all(self, message: str) -> bool:
        """
        Stage everything and commit.

        Args:
            message: Commit message.

        Returns:
            True if a commit was made, False when there was nothing to commit.

        Raises:
            BranchOrCommitError: If staging or committing fails.
        """
        logger.info(f"Committing changes: {message}")

        added = await self._git("add", ".")
        if not added.success:
            raise BranchOrCommitError(
                f"failed to add changes: {added.describe_failure()}\nOutput: {added.output}"
            )

        committed = await self._git("commit", "-m", message)
        if not committed.success:
            if "nothing to commit" in committed.output:
                logger.info("No changes to commit")
                return False
            raise BranchOrCommitError(
                f"failed to commit: {committed.describe_failure()}\nOutput: {committed.output}"
            )

        logger.info("Changes committed")
        return True
