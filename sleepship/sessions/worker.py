"""Background worker launcher.

``sleepship sync`` returns immediately: it relaunches itself with the hidden
``--worker`` flag as a detached process whose output goes to a log file.
"""

import subprocess
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger


@dataclass
class WorkerHandle:
    """A started background worker."""

    pid: int
    log_file: Path
    args: list[str]


def build_worker_args(
    task_file: str | Path,
    project_dir: str | Path | None = None,
    log_dir: str | None = None,
    start_from: int | None = None,
    max_retries: int | None = None,
    create_branch: bool = True,
    commit_changes: bool = True,
) -> list[str]:
    """
    Command line for the worker process.

    Only flags that were given are forwarded so the worker applies the same
    CLI > environment > default priority as the launcher.
    """
    args = [sys.executable, "-m", "sleepship", "sync", str(task_file), "--worker"]
    if project_dir is not None:
        args += ["--dir", str(project_dir)]
    if log_dir is not None:
        args += ["--log-dir", log_dir]
    if start_from is not None:
        args += ["--start-from", str(start_from)]
    if max_retries is not None:
        args += ["--max-retries", str(max_retries)]
    if not create_branch:
        args.append("--no-branch")
    if not commit_changes:
        args.append("--no-commit")
    return args


def spawn_background_worker(
    args: list[str],
    log_dir: Path,
    cwd: Path | None = None,
) -> WorkerHandle:
    """
    Start the worker detached from the current terminal.

    Args:
        args: Worker command line (see ``build_worker_args``).
        log_dir: Directory for the worker's stdout/stderr log.
        cwd: Working directory for the worker.

    Returns:
        WorkerHandle with the PID and log file path.

    Raises:
        OSError: If the log file or the process cannot be created.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"worker-{datetime.now():%Y%m%d-%H%M%S}.log"

    with open(log_file, "wb") as out:
        process = subprocess.Popen(
            args,
            cwd=str(cwd or Path.cwd()),
            stdin=subprocess.DEVNULL,
            stdout=out,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )

    logger.debug(f"Spawned worker PID {process.pid}: {' '.join(args)}")
    return WorkerHandle(pid=process.pid, log_file=log_file, args=args)
