"""Exception hierarchy for Sleepship.

Only parse, dependency and retry-exhaustion failures abort a run. History
and git errors are caught by the engine and downgraded to warnings.
"""


# =============================================================================
# BASE
# =============================================================================


class SleepshipError(Exception):
    """Base exception for Sleepship errors."""

    pass


class ConfigurationError(SleepshipError):
    """Invalid run configuration."""

    pass


# =============================================================================
# TASK DOCUMENT
# =============================================================================


class ParseError(SleepshipError):
    """Task document could not be read or contains no tasks."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class DependencyError(SleepshipError):
    """A task declares an invalid dependency.

    Attributes:
        task_number: 1-based position of the offending task.
        dependency: The dependency index that failed validation.
        kind: One of "self", "forward" or "missing".
    """

    SELF = "self"
    FORWARD = "forward"
    MISSING = "missing"

    def __init__(self, message: str, task_number: int, dependency: int, kind: str) -> None:
        super().__init__(message)
        self.task_number = task_number
        self.dependency = dependency
        self.kind = kind


# =============================================================================
# EXECUTION
# =============================================================================


class ImplementationError(SleepshipError):
    """The coding agent failed to implement a task."""

    def __init__(self, message: str, task_number: int, attempts: int) -> None:
        super().__init__(message)
        self.task_number = task_number
        self.attempts = attempts


class VerificationError(SleepshipError):
    """A verification command kept failing."""

    def __init__(self, message: str, task_number: int, command: str, attempts: int) -> None:
        super().__init__(message)
        self.task_number = task_number
        self.command = command
        self.attempts = attempts


class InvalidTransitionError(SleepshipError):
    """The task state machine received an event it cannot handle."""

    pass


# =============================================================================
# NON-FATAL
# =============================================================================


class HistoryError(SleepshipError):
    """Execution history could not be accessed."""

    pass


class HistoryReadError(HistoryError):
    """History file exists but could not be read or parsed."""

    pass


class HistoryWriteError(HistoryError):
    """History file could not be written."""

    pass


class BranchOrCommitError(SleepshipError):
    """Git branch creation or commit failed."""

    pass


class AliasError(SleepshipError):
    """Alias is unknown or resolves circularly."""

    pass
