"""Execution state for Sleepship runs.

``TaskStateMachine`` drives one task through implementation, verification
and fix cycles. Every legal move is listed in ``TRANSITIONS``; guards only
choose between the targets listed there.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from sleepship.core.exceptions import InvalidTransitionError, SleepshipError

# =============================================================================
# ENUMS
# =============================================================================


class TaskState(str, Enum):
    """Lifecycle state of a task within a run."""

    PENDING = "pending"
    IMPLEMENTING = "implementing"
    VERIFYING = "verifying"
    FIXING = "fixing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskEvent(str, Enum):
    """Inputs to the task state machine."""

    SKIP = "skip"
    START = "start"
    AGENT_SUCCEEDED = "agent_succeeded"
    AGENT_FAILED = "agent_failed"
    VERIFICATION_PASSED = "verification_passed"
    VERIFICATION_FAILED = "verification_failed"
    FIX_FINISHED = "fix_finished"


class AttemptKind(str, Enum):
    """Phase an attempt belongs to."""

    IMPLEMENTATION = "implementation"
    VERIFICATION = "verification"


class VerificationOutcome(str, Enum):
    """Result of running a verification command."""

    PASSED = "passed"
    FAILED = "failed"
    # Self-invocation beyond the recursion limit; counts as a pass
    SKIPPED = "skipped"


TERMINAL_STATES = frozenset({TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED})

TRANSITIONS: dict[tuple[TaskState, TaskEvent], tuple[TaskState, ...]] = {
    (TaskState.PENDING, TaskEvent.SKIP): (TaskState.SKIPPED,),
    (TaskState.PENDING, TaskEvent.START): (TaskState.IMPLEMENTING,),
    (TaskState.IMPLEMENTING, TaskEvent.AGENT_SUCCEEDED): (TaskState.VERIFYING, TaskState.SUCCEEDED),
    (TaskState.IMPLEMENTING, TaskEvent.AGENT_FAILED): (TaskState.IMPLEMENTING, TaskState.FAILED),
    (TaskState.VERIFYING, TaskEvent.VERIFICATION_PASSED): (TaskState.SUCCEEDED,),
    (TaskState.VERIFYING, TaskEvent.VERIFICATION_FAILED): (TaskState.FIXING, TaskState.FAILED),
    (TaskState.FIXING, TaskEvent.FIX_FINISHED): (TaskState.VERIFYING,),
}


# =============================================================================
# ATTEMPTS
# =============================================================================


@dataclass(frozen=True)
class ExecutionAttempt:
    """One failed try within a phase. Never persisted."""

    attempt_number: int
    kind: AttemptKind
    error_detail: str = ""


@dataclass(frozen=True)
class Transition:
    """A recorded state change."""

    source: TaskState
    event: TaskEvent
    target: TaskState


# =============================================================================
# STATE MACHINE
# =============================================================================


class TaskStateMachine:
    """
    Finite state machine for a single task.

    Each phase may be attempted ``max_retries + 1`` times; the two phases
    keep separate counters.

    Example:
        >>> machine = TaskStateMachine(max_retries=1, has_verification=True)
        >>> machine.fire(TaskEvent.START)
        <TaskState.IMPLEMENTING: 'implementing'>
        >>> machine.fire(TaskEvent.AGENT_SUCCEEDED)
        <TaskState.VERIFYING: 'verifying'>
        >>> machine.fire(TaskEvent.VERIFICATION_FAILED, "exit status 1")
        <TaskState.FIXING: 'fixing'>
    """

    def __init__(self, max_retries: int, has_verification: bool) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.has_verification = has_verification
        self.state = TaskState.PENDING
        self.implementation_attempts = 0
        self.verification_attempts = 0
        self.last_attempt: ExecutionAttempt | None = None
        self.transitions: list[Transition] = []

    @property
    def max_attempts(self) -> int:
        """Attempts allowed per phase."""
        return self.max_retries + 1

    @property
    def is_terminal(self) -> bool:
        """Check if the task has finished (succeeded, failed or skipped)."""
        return self.state in TERMINAL_STATES

    @property
    def implementation_retries(self) -> int:
        """Implementation attempts beyond the first."""
        return max(self.implementation_attempts - 1, 0)

    def fire(self, event: TaskEvent, error_detail: str = "") -> TaskState:
        """
        Apply an event.

        Args:
            event: Event to apply.
            error_detail: Failure detail for AGENT_FAILED / VERIFICATION_FAILED.

        Returns:
            The new state.

        Raises:
            InvalidTransitionError: If the event is not legal in the current state.
        """
        allowed = TRANSITIONS.get((self.state, event))
        if allowed is None:
            raise InvalidTransitionError(f"cannot apply {event.value} in state {self.state.value}")

        target = self._resolve(event, error_detail)
        if target not in allowed:
            raise InvalidTransitionError(
                f"{event.value} resolved to {target.value}, not one of {[s.value for s in allowed]}"
            )

        self.transitions.append(Transition(self.state, event, target))
        logger.debug(f"Task state {self.state.value} --{event.value}--> {target.value}")
        self.state = target
        return target

    def _resolve(self, event: TaskEvent, error_detail: str) -> TaskState:
        if event is TaskEvent.SKIP:
            return TaskState.SKIPPED

        if event is TaskEvent.START:
            self.implementation_attempts = 1
            return TaskState.IMPLEMENTING

        if event is TaskEvent.AGENT_SUCCEEDED:
            if not self.has_verification:
                return TaskState.SUCCEEDED
            self.verification_attempts = 1
            return TaskState.VERIFYING

        if event is TaskEvent.AGENT_FAILED:
            self.last_attempt = ExecutionAttempt(
                self.implementation_attempts, AttemptKind.IMPLEMENTATION, error_detail
            )
            if self.implementation_attempts >= self.max_attempts:
                return TaskState.FAILED
            self.implementation_attempts += 1
            return TaskState.IMPLEMENTING

        if event is TaskEvent.VERIFICATION_PASSED:
            return TaskState.SUCCEEDED

        if event is TaskEvent.VERIFICATION_FAILED:
            self.last_attempt = ExecutionAttempt(
                self.verification_attempts, AttemptKind.VERIFICATION, error_detail
            )
            if self.verification_attempts >= self.max_attempts:
                return TaskState.FAILED
            return TaskState.FIXING

        # FIX_FINISHED
        self.verification_attempts += 1
        return TaskState.VERIFYING


# =============================================================================
# OUTCOMES
# =============================================================================


@dataclass
class TaskOutcome:
    """Final result of one task."""

    task_number: int
    title: str
    state: TaskState
    implementation_attempts: int = 0
    verification_attempts: int = 0
    failed_phase: AttemptKind | None = None
    error_detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is TaskState.SUCCEEDED

    @property
    def attempts(self) -> int:
        """Attempts made in the phase that decided the outcome."""
        if self.failed_phase is AttemptKind.VERIFICATION:
            return self.verification_attempts
        return self.implementation_attempts

    @classmethod
    def from_machine(cls, task_number: int, title: str, machine: TaskStateMachine) -> "TaskOutcome":
        failed = machine.state is TaskState.FAILED and machine.last_attempt is not None
        return cls(
            task_number=task_number,
            title=title,
            state=machine.state,
            implementation_attempts=machine.implementation_attempts,
            verification_attempts=machine.verification_attempts,
            failed_phase=machine.last_attempt.kind if failed else None,
            error_detail=machine.last_attempt.error_detail if failed else "",
        )


@dataclass
class RunResult:
    """Outcome of one run of a task document."""

    success: bool
    task_file: Path
    task_count: int = 0
    executed_tasks: int = 0
    skipped_tasks: int = 0
    failed_task: int | None = None
    error: SleepshipError | None = None
    branch_name: str = ""
    log_file: Path | None = None
    duration: timedelta = field(default_factory=timedelta)
    outcomes: list[TaskOutcome] = field(default_factory=list)
    tasks: list[Any] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""
