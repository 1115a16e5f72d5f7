"""Recursion guard for verification commands that re-invoke Sleepship.

A task document may verify a step by running ``sleepship`` again on another
document. The nesting depth travels to the child through ``SLEEPSHIP_DEPTH``;
inside a process the depth is an explicit value held by ``RecursionGuard``
and handed to each subprocess launch.
"""

import os
from collections.abc import Mapping

from loguru import logger

DEPTH_ENV_VAR = "SLEEPSHIP_DEPTH"
DEFAULT_MAX_DEPTH = 3
TOOL_NAMES = ("sleepship", "./bin/sleepship")


class RecursionGuard:
    """
    Decide whether a self-invoking command may run, and at which depth.

    Example:
        >>> guard = RecursionGuard(depth=3)
        >>> guard.should_skip("sleepship sync nested.md --worker")
        True
        >>> RecursionGuard(depth=1).child_environment("sleepship sync x", {})
        {'SLEEPSHIP_DEPTH': '2'}
    """

    def __init__(
        self,
        depth: int = 0,
        max_depth: int = DEFAULT_MAX_DEPTH,
        tool_names: tuple[str, ...] = TOOL_NAMES,
    ) -> None:
        """
        Initialize the guard.

        Args:
            depth: Nesting depth of the current process (0 at top level).
            max_depth: Depth at which self-invocations are skipped.
            tool_names: Substrings that identify a self-invocation.
        """
        self._depth = max(depth, 0)
        self.max_depth = max_depth
        self.tool_names = tool_names

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> "RecursionGuard":
        """Build a guard from the inherited depth variable (0 when absent or invalid)."""
        environ = os.environ if environ is None else environ
        return cls(depth=parse_depth(environ.get(DEPTH_ENV_VAR)), max_depth=max_depth)

    def current_depth(self) -> int:
        """Nesting depth of this process."""
        return self._depth

    @property
    def is_nested(self) -> bool:
        """Check if this process was started by another Sleepship run."""
        return self._depth > 0

    def is_self_invocation(self, command: str) -> bool:
        """Check if a shell command re-invokes this tool."""
        return any(name in command for name in self.tool_names)

    def should_skip(self, command: str) -> bool:
        """Check if a command must be skipped because the depth limit is reached."""
        return self.is_self_invocation(command) and self._depth >= self.max_depth

    def child_environment(
        self,
        command: str,
        base: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Environment for the subprocess that runs ``command``.

        Args:
            command: Shell command about to run.
            base: Environment to copy (the current process environment when None).

        Returns:
            Copy of ``base`` with the depth incremented for self-invocations.
        """
        env = dict(os.environ if base is None else base)
        if self.is_self_invocation(command):
            logger.info(f"Executing recursive sleepship command (depth: {self._depth} -> {self._depth + 1})")
            env[DEPTH_ENV_VAR] = str(self._depth + 1)
        return env

    def child(self) -> "RecursionGuard":
        """Guard for a nested invocation."""
        return RecursionGuard(depth=self._depth + 1, max_depth=self.max_depth, tool_names=self.tool_names)

    def __repr__(self) -> str:
        return f"RecursionGuard(depth={self._depth}, max_depth={self.max_depth})"


def parse_depth(value: str | None) -> int:
    """Parse a depth value, falling back to 0."""
    if not value:
        return 0
    try:
        depth = int(value.strip())
    except ValueError:
        return 0
    return max(depth, 0)
