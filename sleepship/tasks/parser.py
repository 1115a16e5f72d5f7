"""Task document parser - turns a markdown-like task file into Task records.

Document format::

    ## Task1: Initialize project

    Free-form instructions for the coding agent.

    ### Dependencies
    - 1, 2

    ### Prerequisites
    - `go version`

    ### Verify
    - `go build`

Headings may also use the Japanese markers ``## タスク``, ``### 依存`` and
``### 前提確認``. Dependency and prerequisite sections are optional.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from sleepship.core.exceptions import ParseError
from sleepship.tasks.models import Task

TASK_MARKERS = ("## タスク", "## Task")
DEPENDENCY_MARKERS = ("### 依存", "### Dependencies")
PREREQUISITE_MARKERS = ("### 前提確認", "### Prerequisites")
SUBSECTION_PREFIX = "###"
SEPARATOR_PREFIX = "---"
LIST_PREFIX = "- "

COMMAND_PATTERN = re.compile(r"^- `(.*)`$")
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass
class _TaskBuilder:
    """Mutable accumulator for the task currently being scanned."""

    title: str
    description_lines: list[str] = field(default_factory=list)
    command: str = ""
    prerequisites: str = ""
    dependencies: list[int] = field(default_factory=list)

    def build(self) -> Task:
        return Task(
            title=self.title,
            description="\n".join(self.description_lines),
            command=self.command,
            prerequisites=self.prerequisites,
            dependencies=tuple(self.dependencies),
        )


class TaskDocumentParser:
    """
    Parse task documents into an ordered list of Task records.

    Example:
        >>> parser = TaskDocumentParser()
        >>> tasks = parser.parse_text("## Task1: Setup\\n- `make`\\n")
        >>> tasks[0].command
        'make'
    """

    def parse_file(self, path: str | Path) -> list[Task]:
        """
        Read and parse a task document.

        Args:
            path: Path to the UTF-8 task document.

        Returns:
            Tasks in document order.

        Raises:
            ParseError: If the file cannot be opened, read or decoded.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"failed to read task file {path}: {e}", path=str(path)) from e

        tasks = self.parse_text(text)
        logger.debug(f"Parsed {len(tasks)} tasks from {path}")
        return tasks

    def parse_text(self, text: str) -> list[Task]:
        """
        Parse task document text.

        Args:
            text: Document contents.

        Returns:
            Tasks in document order. A document without task headings
            yields an empty list.
        """
        tasks: list[Task] = []
        current: _TaskBuilder | None = None
        in_dependencies = False
        in_prerequisites = False

        for line in text.splitlines():
            if line.startswith(TASK_MARKERS):
                if current is not None:
                    tasks.append(current.build())
                current = _TaskBuilder(title=self._strip_marker(line))
                in_dependencies = False
                in_prerequisites = False
                continue

            if current is None:
                continue

            if line.startswith(DEPENDENCY_MARKERS):
                in_dependencies, in_prerequisites = True, False
                continue

            if line.startswith(PREREQUISITE_MARKERS):
                in_dependencies, in_prerequisites = False, True
                continue

            # Any other subsection heading closes the special sections
            if line.startswith(SUBSECTION_PREFIX):
                in_dependencies = in_prerequisites = False

            if in_dependencies:
                if line.startswith(LIST_PREFIX):
                    current.dependencies.extend(parse_dependency_list(line[len(LIST_PREFIX) :]))
                continue

            command = extract_command(line)

            if in_prerequisites:
                if command is not None:
                    current.prerequisites = command
                continue

            if command is not None:
                current.command = command
                continue

            if line and not line.startswith(SEPARATOR_PREFIX):
                current.description_lines.append(line)

        if current is not None:
            tasks.append(current.build())

        return tasks

    @staticmethod
    def _strip_marker(line: str) -> str:
        for marker in TASK_MARKERS:
            if line.startswith(marker):
                return line[len(marker) :].strip()
        return line.strip()


def extract_command(line: str) -> str | None:
    """Return the command of a ``- `cmd` `` line, or None for other lines."""
    match = COMMAND_PATTERN.match(line)
    if match is None:
        return None
    return match.group(1)


def parse_dependency_list(text: str) -> list[int]:
    """
    Parse a comma-separated list of task numbers.

    Non-numeric entries are ignored.

    Example:
        >>> parse_dependency_list("1, 2, x, 3")
        [1, 2, 3]
    """
    numbers: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if INTEGER_PATTERN.fullmatch(part):
            numbers.append(int(part))
    return numbers


def parse_task_file(path: str | Path) -> list[Task]:
    """Parse a task document with the default parser."""
    return TaskDocumentParser().parse_file(path)
