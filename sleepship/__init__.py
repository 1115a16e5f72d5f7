"""
Sleepship - autonomous development with Claude Code.

Runs a task document one task at a time: the agent implements each task, a
shell command verifies it, and failures are retried a bounded number of times.
"""

__version__ = "0.1.0"

from sleepship.core.engine import SyncEngine

__all__ = ["SyncEngine", "__version__"]
