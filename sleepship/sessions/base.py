"""
Subprocess plumbing shared by the agent, shell and git sessions.

Every external process Sleepship drives goes through ``run_process``: it
launches the program with asyncio, optionally feeds stdin, captures the
combined stdout/stderr and, when streaming, mirrors the output to every
loguru sink (console and run log) as it arrives.
"""

import asyncio
import codecs
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

READ_CHUNK_SIZE = 4096


# =============================================================================
# RESULT
# =============================================================================


@dataclass
class ProcessResult:
    """Result of a finished (or never started) subprocess."""

    args: list[str]
    return_code: int | None
    output: str = ""
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Check if the process started and exited with status 0."""
        return self.error is None and self.return_code == 0

    def describe_failure(self) -> str:
        """Short human-readable reason for a failed process."""
        if self.error:
            return self.error
        if self.return_code is None:
            return "process did not finish"
        return f"exit status {self.return_code}"


# =============================================================================
# PROCESS RUNNER
# =============================================================================


async def run_process(
    args: Sequence[str],
    cwd: str | Path,
    env: Mapping[str, str] | None = None,
    stdin_text: str | None = None,
    stream: bool = False,
) -> ProcessResult:
    """
    Run a program to completion.

    Args:
        args: Program and arguments.
        cwd: Working directory.
        env: Full environment for the child (inherits ours when None).
        stdin_text: Text written to the child's stdin, which is then closed.
        stream: Mirror output to the loguru sinks while it runs.

    Returns:
        ProcessResult with combined stdout/stderr. Launch failures are
        reported through ``ProcessResult.error`` instead of raising.
    """
    argv = [str(a) for a in args]
    started = time.monotonic()

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            stdin=asyncio.subprocess.PIPE if stdin_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        logger.error(f"Failed to start {argv[0]}: {e}")
        return ProcessResult(
            args=argv,
            return_code=None,
            error=f"failed to start {argv[0]}: {e}",
            duration_seconds=time.monotonic() - started,
        )

    logger.debug(f"Started {argv[0]} (PID {process.pid})")

    chunks: list[str] = []
    await asyncio.gather(
        _feed_stdin(process, stdin_text),
        _collect_output(process.stdout, chunks, stream),
    )
    return_code = await process.wait()

    return ProcessResult(
        args=argv,
        return_code=return_code,
        output="".join(chunks),
        duration_seconds=time.monotonic() - started,
    )


async def _feed_stdin(process: asyncio.subprocess.Process, text: str | None) -> None:
    if text is None or process.stdin is None:
        return
    try:
        process.stdin.write(text.encode("utf-8"))
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError) as e:
        logger.debug(f"Child closed stdin early: {e}")
    finally:
        process.stdin.close()


async def _collect_output(
    stream: asyncio.StreamReader | None,
    chunks: list[str],
    mirror: bool,
) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(READ_CHUNK_SIZE)
        text = decoder.decode(data, final=not data)
        if text:
            chunks.append(text)
            if mirror:
                logger.opt(raw=True).info(text)
        if not data:
            break
