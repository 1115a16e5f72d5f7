"""
Terminal sessions for the coding agent and verification commands.

The agent is the ``claude`` CLI in non-interactive mode with the prompt on
stdin. Verification commands run through ``bash -c`` in the project
directory. Both stream their output to the console and the run log.
"""

import os
import shutil
from collections.abc import Mapping, Sequence
from pathlib import Path

from loguru import logger

from sleepship.sessions.base import ProcessResult, run_process

AGENT_BASE_FLAGS = ("-p", "--dangerously-skip-permissions")


# =============================================================================
# AGENT SESSION
# =============================================================================


class AgentSession:
    """
    Runs the Claude Code CLI for one prompt at a time.

    Example:
        >>> agent = AgentSession()
        >>> result = await agent.run("Create a hello world script", cwd="/tmp/project")
        >>> result.success
        True
    """

    def __init__(
        self,
        claude_path: str | None = None,
        extra_flags: Sequence[str] = (),
        environment: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize the agent session.

        Args:
            claude_path: Path to the claude CLI (auto-detected if None).
            extra_flags: Additional CLI flags appended after the base flags.
            environment: Environment for the agent (inherits ours when None).
        """
        self.claude_path = claude_path or find_claude_path()
        self.extra_flags = tuple(extra_flags)
        self.environment = environment

    def build_args(self) -> list[str]:
        """Command line used to start the agent."""
        return [self.claude_path, *AGENT_BASE_FLAGS, *self.extra_flags]

    async def run(self, prompt: str, cwd: str | Path) -> ProcessResult:
        """
        Send one prompt to the agent and wait for it to exit.

        Args:
            prompt: Prompt delivered on stdin.
            cwd: Project directory.

        Returns:
            ProcessResult; a non-zero exit or launch error means failure.
        """
        logger.info("Executing with Claude...")
        logger.debug(f"Prompt:\n{prompt}")
        result = await run_process(
            self.build_args(),
            cwd=cwd,
            env=self.environment,
            stdin_text=prompt,
            stream=True,
        )
        if not result.success:
            logger.warning(f"Claude execution failed: {result.describe_failure()}")
        return result


def find_claude_path() -> str:
    """Find the claude CLI executable."""
    locations = [
        "claude",
        "/usr/local/bin/claude",
        "/opt/homebrew/bin/claude",
        os.path.expanduser("~/.local/bin/claude"),
    ]

    for loc in locations:
        if shutil.which(loc):
            return loc

    # Let the launch fail later with a clear error
    return "claude"


# =============================================================================
# SHELL SESSION
# =============================================================================


class ShellSession:
    """Runs shell command strings from task documents."""

    def __init__(self, shell: str = "bash") -> None:
        self.shell = shell

    async def run(
        self,
        command: str,
        cwd: str | Path,
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        """
        Run ``command`` with ``<shell> -c``.

        Args:
            command: Shell command string.
            cwd: Working directory.
            env: Environment for the command.

        Returns:
            ProcessResult with combined output; exit status 0 means pass.
        """
        logger.info(f"Running command: {command}")
        return await run_process([self.shell, "-c", command], cwd=cwd, env=env, stream=True)
