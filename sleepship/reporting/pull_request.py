"""Pull-request title and body for a completed run."""

import re
from collections.abc import Sequence

from sleepship.tasks.models import Task

MANY_TASKS = 5

_NUMBER_PREFIX = re.compile(r"^(\d+|タスク\d+|Task\d+):\s*")


def strip_task_number(title: str) -> str:
    """Remove a leading ``1:`` / ``タスク1:`` / ``Task1:`` prefix."""
    return _NUMBER_PREFIX.sub("", title)


def generate_pr_title(tasks: Sequence[Task], feature_name: str) -> str:
    """
    Title for the pull request of a run.

    Args:
        tasks: Tasks of the run, in document order.
        feature_name: Sanitized task-file name, used when there are no tasks.

    Returns:
        The first task title without its number prefix, suffixed with
        " implementation" when the run covers more than five tasks.

    Example:
        >>> generate_pr_title([Task(title="1: Add user model")], "user-auth")
        'Add user model'
    """
    if not tasks:
        return f"{feature_name} implementation"

    title = strip_task_number(tasks[0].title)
    if len(tasks) > MANY_TASKS:
        return f"{title} implementation"
    return title


def generate_pr_body(tasks: Sequence[Task]) -> str:
    """Markdown body listing the implemented tasks and the checks they passed."""
    lines = [
        "## Summary",
        "",
        f"This PR implements the following {len(tasks)} tasks.",
        "",
        "## Changes",
        "",
    ]
    lines.extend(f"{i}. {strip_task_number(task.title)}" for i, task in enumerate(tasks, start=1))

    lines += ["", "## Testing", "", "Each task was verified on completion with:", ""]
    # dict keeps first-seen order
    commands = dict.fromkeys(task.command for task in tasks if task.command)
    lines.extend(f"- `{command}`" for command in commands)

    lines += ["", "## Notes", "", "This PR was generated automatically by sleepship.", ""]
    return "\n".join(lines)
