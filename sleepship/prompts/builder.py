"""Prompt builder - fills the agent templates for one task."""

from pathlib import Path

from sleepship.core.state import ExecutionAttempt
from sleepship.prompts.templates import (
    FIX_PROMPT,
    IMPLEMENTATION_PROMPT,
    PREREQUISITE_SECTION,
    RETRY_PROMPT,
    VERDICT_INSTRUCTIONS,
)
from sleepship.tasks.models import Task

MAX_ERROR_CHARS = 4000


class PromptBuilder:
    """
    Build agent prompts for a project.

    Example:
        >>> builder = PromptBuilder(project_dir="/tmp/project", max_retries=3)
        >>> prompt = builder.implementation(task)
        >>> "# Task" in prompt
        True
    """

    def __init__(self, project_dir: str | Path, max_retries: int) -> None:
        self.project_dir = str(project_dir)
        self.max_retries = max_retries

    def implementation(self, task: Task) -> str:
        """Prompt for the first implementation attempt."""
        return IMPLEMENTATION_PROMPT.format(
            title=task.title,
            description=task.description,
            prerequisites=self._prerequisites(task),
            project_dir=self.project_dir,
            verdict=VERDICT_INSTRUCTIONS,
        )

    def retry(self, task: Task, failed: ExecutionAttempt) -> str:
        """Prompt for the implementation attempt after ``failed``."""
        return RETRY_PROMPT.format(
            retry=failed.attempt_number,
            max_retries=self.max_retries,
            error=_truncate(failed.error_detail),
            title=task.title,
            description=task.description,
            prerequisites=self._prerequisites(task),
            project_dir=self.project_dir,
            verdict=VERDICT_INSTRUCTIONS,
        )

    def fix(self, task: Task, failed: ExecutionAttempt) -> str:
        """Prompt asking the agent to repair a failed verification."""
        return FIX_PROMPT.format(
            retry=failed.attempt_number,
            max_retries=self.max_retries,
            command=task.command,
            error=_truncate(failed.error_detail),
            project_dir=self.project_dir,
        )

    @staticmethod
    def _prerequisites(task: Task) -> str:
        if not task.has_prerequisites:
            return ""
        return PREREQUISITE_SECTION.format(command=task.prerequisites)


def _truncate(text: str) -> str:
    # Keep the tail of long command output
    if len(text) <= MAX_ERROR_CHARS:
        return text
    return "...\n" + text[-MAX_ERROR_CHARS:]
