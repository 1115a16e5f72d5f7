"""Dependency validation for parsed task documents.

Dependencies may only point at earlier tasks. That ordering rule makes
circular dependencies impossible, so validation never needs a graph search:
checking every edge against the ordering invariant is sufficient.
"""

from collections.abc import Sequence

from loguru import logger

from sleepship.core.exceptions import DependencyError
from sleepship.tasks.models import Task


class DependencyValidator:
    """
    Check that every dependency refers to an existing, earlier task.

    Example:
        >>> DependencyValidator().validate(tasks)  # raises DependencyError
    """

    def validate(self, tasks: Sequence[Task]) -> None:
        """
        Validate the dependencies of every task.

        Args:
            tasks: Tasks in document order.

        Raises:
            DependencyError: On the first self, forward or non-existent
                dependency found.
        """
        for index, task in enumerate(tasks, start=1):
            for dependency in task.dependencies:
                self._check(index, dependency)

        declared = sum(len(t.dependencies) for t in tasks)
        if declared:
            logger.debug(f"Validated {declared} dependencies across {len(tasks)} tasks")

    @staticmethod
    def _check(task_number: int, dependency: int) -> None:
        if dependency == task_number:
            raise DependencyError(
                f"task {task_number} cannot depend on itself",
                task_number=task_number,
                dependency=dependency,
                kind=DependencyError.SELF,
            )
        if dependency > task_number:
            raise DependencyError(
                f"task {task_number} cannot depend on later task {dependency} "
                "(dependencies must be on earlier tasks)",
                task_number=task_number,
                dependency=dependency,
                kind=DependencyError.FORWARD,
            )
        if dependency < 1:
            raise DependencyError(
                f"task {task_number} references non-existent task {dependency}",
                task_number=task_number,
                dependency=dependency,
                kind=DependencyError.MISSING,
            )


def validate_dependencies(tasks: Sequence[Task]) -> None:
    """Validate task dependencies with the default validator."""
    DependencyValidator().validate(tasks)
