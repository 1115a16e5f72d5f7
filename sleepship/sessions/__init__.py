"""Subprocess sessions - coding agent, shell commands and the background worker."""

from sleepship.sessions.base import ProcessResult, run_process
from sleepship.sessions.recursion import RecursionGuard
from sleepship.sessions.terminal import AgentSession, ShellSession

__all__ = ["ProcessResult", "run_process", "RecursionGuard", "AgentSession", "ShellSession"]
