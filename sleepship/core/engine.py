"""Sync engine - runs a task document from start to finish.

The engine parses and validates the document, creates a branch, then drives
every task through its ``TaskStateMachine`` one at a time. Whatever happens,
exactly one history entry is written per run.
"""

import time
from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from sleepship.core.config import RunConfig
from sleepship.core.exceptions import (
    BranchOrCommitError,
    ConfigurationError,
    HistoryError,
    ImplementationError,
    ParseError,
    SleepshipError,
    VerificationError,
)
from sleepship.core.log import add_run_log
from sleepship.core.state import (
    AttemptKind,
    RunResult,
    TaskEvent,
    TaskOutcome,
    TaskState,
    TaskStateMachine,
    VerificationOutcome,
)
from sleepship.history.store import HistoryEntry, HistoryStore
from sleepship.prompts.builder import PromptBuilder
from sleepship.reporting.failure import format_failure_report
from sleepship.sessions.recursion import RecursionGuard
from sleepship.sessions.terminal import AgentSession, ShellSession
from sleepship.tasks.models import Task
from sleepship.tasks.parser import TaskDocumentParser
from sleepship.tasks.validator import DependencyValidator
from sleepship.vcs.git import GitRepository, branch_name_for


class SyncEngine:
    """
    Executes one task document.

    Collaborators default to the real implementations and can be replaced
    for testing.

    Example:
        >>> config = build_run_config("tasks-user-auth.md")
        >>> result = await SyncEngine(config).run()
        >>> result.success
        True
    """

    def __init__(
        self,
        config: RunConfig,
        agent: AgentSession | None = None,
        shell: ShellSession | None = None,
        git: GitRepository | None = None,
        guard: RecursionGuard | None = None,
        history: HistoryStore | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Run configuration.
            agent: Coding agent session.
            shell: Session for verification commands.
            git: Repository used for the branch and commits.
            guard: Recursion guard (read from SLEEPSHIP_DEPTH if omitted).
            history: History store of the project directory.
        """
        self.config = config
        self.agent = agent or AgentSession(
            claude_path=config.claude_path,
            extra_flags=config.claude_flags,
        )
        self.shell = shell or ShellSession()
        self.git = git or GitRepository(config.project_dir)
        self.guard = guard or RecursionGuard.from_environ(max_depth=config.max_depth)
        self.history = history or HistoryStore(config.project_dir)
        self.prompts = PromptBuilder(config.project_dir, config.max_retries)
        self.parser = TaskDocumentParser()
        self.validator = DependencyValidator()

    # =========================================================================
    # RUN
    # =========================================================================

    async def run(self) -> RunResult:
        """
        Run the task document.

        Returns:
            RunResult; ``success`` is False when a task exhausted its retries.

        Raises:
            ParseError: If the document cannot be read or has no tasks.
            DependencyError: If a task declares an invalid dependency.
            ConfigurationError: If the log directory cannot be created.
        """
        started = time.monotonic()
        result = RunResult(success=False, task_file=self.config.task_file)

        try:
            await self._run(result)
        except Exception as e:
            result.duration = timedelta(seconds=time.monotonic() - started)
            self._record_history(result, error_message=str(e))
            raise

        result.duration = timedelta(seconds=time.monotonic() - started)
        self._record_history(result, error_message=result.error_message)
        return result

    async def _run(self, result: RunResult) -> None:
        config = self.config

        if self.guard.is_nested:
            logger.info(
                f"Recursive execution detected (depth: {self.guard.current_depth()}/{self.guard.max_depth})"
            )

        tasks = self._load_tasks(result)
        total = len(tasks)

        if config.start_from > total:
            logger.warning(f"start-from ({config.start_from}) exceeds task count ({total}); nothing to do")
            result.success = True
            result.skipped_tasks = total
            return

        result.log_file = config.log_path / f"sync-{datetime.now():%Y%m%d-%H%M%S}.log"
        try:
            handler_id = add_run_log(result.log_file)
        except OSError as e:
            raise ConfigurationError(f"failed to create log directory: {e}") from e
        try:
            logger.info(f"Log file: {result.log_file}")
            logger.info(f"Task file: {config.task_file} ({total} tasks)")
            logger.info(f"Project directory: {config.project_dir}")
            logger.info(f"Max retries: {config.max_retries}")
            if config.start_from > 1:
                logger.info(f"Starting from task {config.start_from}")

            if config.create_branch:
                result.branch_name = await self._create_branch()

            for number, task in enumerate(tasks, start=1):
                outcome = await self.execute_task(number, task, total)
                result.outcomes.append(outcome)

                if outcome.state is TaskState.SKIPPED:
                    result.skipped_tasks += 1
                    continue

                if outcome.state is TaskState.FAILED:
                    result.failed_task = number
                    result.error = _failure_error(outcome, task)
                    logger.error(format_failure_report(outcome, total, command=task.command))
                    return

                result.executed_tasks += 1
                logger.info(f"Task {number}/{total} completed: {task.title}")
                if config.commit_changes:
                    await self._commit(number, task)

            result.success = True
            logger.info("All tasks completed successfully!")
        finally:
            logger.remove(handler_id)

    def _load_tasks(self, result: RunResult) -> list[Task]:
        logger.info(f"Loading task file: {self.config.task_file}")
        tasks = self.parser.parse_file(self.config.task_file)
        result.tasks = list(tasks)
        result.task_count = len(tasks)

        if not tasks:
            raise ParseError(
                f"no tasks found in task file: {self.config.task_file}",
                path=str(self.config.task_file),
            )

        self.validator.validate(tasks)
        return tasks

    # =========================================================================
    # TASK EXECUTION
    # =========================================================================

    async def execute_task(self, number: int, task: Task, total: int) -> TaskOutcome:
        """
        Drive one task to a terminal state.

        Args:
            number: 1-based position of the task.
            task: Task to execute.
            total: Number of tasks in the document.

        Returns:
            TaskOutcome with the final state and attempt counts.
        """
        machine = TaskStateMachine(self.config.max_retries, has_verification=task.has_verification)

        if number < self.config.start_from:
            logger.info(f"Skipping task {number}/{total}: {task.title}")
            machine.fire(TaskEvent.SKIP)
            return TaskOutcome.from_machine(number, task.title, machine)

        logger.info(f"[Task {number}/{total}] {task.title}")
        machine.fire(TaskEvent.START)

        while not machine.is_terminal:
            if machine.state is TaskState.IMPLEMENTING:
                await self._implement(number, total, task, machine)
            elif machine.state is TaskState.VERIFYING:
                await self._verify(number, total, task, machine)
            elif machine.state is TaskState.FIXING:
                await self._fix(task, machine)

        return TaskOutcome.from_machine(number, task.title, machine)

    async def _implement(self, number: int, total: int, task: Task, machine: TaskStateMachine) -> None:
        attempt = machine.implementation_attempts
        if machine.last_attempt is None:
            prompt = self.prompts.implementation(task)
        else:
            logger.info(f"Retrying implementation ({machine.implementation_retries}/{self.config.max_retries})")
            prompt = self.prompts.retry(task, machine.last_attempt)

        result = await self.agent.run(prompt, cwd=self.config.project_dir)
        if result.success:
            machine.fire(TaskEvent.AGENT_SUCCEEDED)
            return

        detail = f"claude execution failed: {result.describe_failure()}"
        logger.error(
            f"Task failed (task {number}/{total}, attempt {attempt}/{machine.max_attempts}): {detail}"
        )
        machine.fire(TaskEvent.AGENT_FAILED, detail)

    async def _verify(self, number: int, total: int, task: Task, machine: TaskStateMachine) -> None:
        attempt = machine.verification_attempts
        outcome, detail = await self.run_verification(task.command)

        if outcome is not VerificationOutcome.FAILED:
            if outcome is VerificationOutcome.PASSED:
                logger.info("Verification passed")
            machine.fire(TaskEvent.VERIFICATION_PASSED)
            return

        logger.error(
            f"Verification failed (task {number}/{total}, command: {task.command}, "
            f"attempt {attempt}/{machine.max_attempts})"
        )
        machine.fire(TaskEvent.VERIFICATION_FAILED, detail)

    async def _fix(self, task: Task, machine: TaskStateMachine) -> None:
        logger.info(
            f"Asking Claude to fix the verification failure "
            f"(retry {machine.verification_attempts}/{self.config.max_retries})"
        )
        result = await self.agent.run(self.prompts.fix(task, machine.last_attempt), cwd=self.config.project_dir)
        if not result.success:
            logger.warning(f"Fix attempt failed: {result.describe_failure()}; re-running verification")
        machine.fire(TaskEvent.FIX_FINISHED)

    async def run_verification(self, command: str) -> tuple[VerificationOutcome, str]:
        """
        Run a verification command through the recursion guard.

        Returns:
            The outcome and, on failure, the error detail with the command output.
        """
        if self.guard.should_skip(command):
            logger.warning(
                f"Maximum recursion depth ({self.guard.max_depth}) reached. "
                f"Skipping sleepship command: {command}"
            )
            return VerificationOutcome.SKIPPED, ""

        env = self.guard.child_environment(command)
        result = await self.shell.run(command, cwd=self.config.project_dir, env=env)
        if result.success:
            return VerificationOutcome.PASSED, ""
        return VerificationOutcome.FAILED, f"{result.describe_failure()}\nOutput:\n{result.output}"

    # =========================================================================
    # SIDE EFFECTS
    # =========================================================================

    async def _create_branch(self) -> str:
        name = branch_name_for(self.config.task_file)
        try:
            await self.git.create_branch(name)
        except BranchOrCommitError as e:
            logger.warning(f"Failed to create branch: {e}")
            return ""
        return name

    async def _commit(self, number: int, task: Task) -> None:
        message = f"Task {number}: {task.title} ({datetime.now():%Y-%m-%d %H:%M:%S})"
        try:
            await self.git.commit_all(message)
        except BranchOrCommitError as e:
            logger.warning(f"Failed to commit changes: {e}")

    def _record_history(self, result: RunResult, error_message: str) -> None:
        entry = HistoryEntry(
            task_file=str(self.config.task_file),
            success=result.success,
            duration=result.duration,
            task_count=result.task_count,
            error_message=error_message,
            start_from=self.config.start_from,
            max_retries=self.config.max_retries,
            branch_name=result.branch_name,
        )
        try:
            self.history.record(entry)
        except HistoryError as e:
            logger.warning(f"Failed to record history: {e}")


def _failure_error(outcome: TaskOutcome, task: Task) -> SleepshipError:
    if outcome.failed_phase is AttemptKind.VERIFICATION:
        return VerificationError(
            f"Verification failed for task {outcome.task_number}: {outcome.error_detail.strip()}",
            task_number=outcome.task_number,
            command=task.command,
            attempts=outcome.attempts,
        )
    return ImplementationError(
        f"Task {outcome.task_number} failed: {outcome.error_detail.strip()}",
        task_number=outcome.task_number,
        attempts=outcome.attempts,
    )
