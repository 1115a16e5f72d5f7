"""Task documents - parsing and dependency validation."""

from sleepship.tasks.models import Task
from sleepship.tasks.parser import TaskDocumentParser, parse_task_file
from sleepship.tasks.validator import DependencyValidator, validate_dependencies

__all__ = [
    "Task",
    "TaskDocumentParser",
    "parse_task_file",
    "DependencyValidator",
    "validate_dependencies",
]
