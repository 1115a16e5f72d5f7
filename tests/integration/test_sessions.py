"""Integration tests for subprocess sessions."""

import sys
from pathlib import Path

import pytest
from loguru import logger

from sleepship.sessions.base import run_process
from sleepship.sessions.terminal import AgentSession, ShellSession
from sleepship.sessions.worker import build_worker_args


@pytest.fixture
def captured_logs():
    """Collect raw log output."""
    messages: list[str] = []
    handler_id = logger.add(messages.append, format="{message}", level="DEBUG")

    yield messages

    logger.remove(handler_id)


class TestRunProcess:
    """Tests for run_process."""

    @pytest.mark.asyncio
    async def test_combined_output(self, tmp_path):
        """Test that stdout and stderr are captured together."""
        result = await run_process(["bash", "-c", "echo out; echo err >&2"], cwd=tmp_path)

        assert result.success
        assert "out" in result.output
        assert "err" in result.output

    @pytest.mark.asyncio
    async def test_stdin(self, tmp_path):
        """Test feeding stdin."""
        result = await run_process(["cat"], cwd=tmp_path, stdin_text="hello from stdin")

        assert result.output == "hello from stdin"

    @pytest.mark.asyncio
    async def test_exit_status(self, tmp_path):
        """Test a failing command."""
        result = await run_process(["bash", "-c", "exit 3"], cwd=tmp_path)

        assert not result.success
        assert result.return_code == 3
        assert result.describe_failure() == "exit status 3"

    @pytest.mark.asyncio
    async def test_launch_error(self, tmp_path):
        """Test that a missing program is reported, not raised."""
        result = await run_process([str(tmp_path / "no-such-binary")], cwd=tmp_path)

        assert not result.success
        assert result.return_code is None
        assert "failed to start" in result.error

    @pytest.mark.asyncio
    async def test_stream_mirrors_to_logger(self, tmp_path, captured_logs):
        """Test that streamed output reaches loguru sinks."""
        await run_process(["bash", "-c", "echo streamed-line"], cwd=tmp_path, stream=True)

        assert any("streamed-line" in m for m in captured_logs)

    @pytest.mark.asyncio
    async def test_environment(self, tmp_path):
        """Test passing an explicit environment."""
        result = await run_process(
            ["bash", "-c", "echo $SLEEPSHIP_DEPTH"],
            cwd=tmp_path,
            env={"SLEEPSHIP_DEPTH": "2", "PATH": "/usr/bin:/bin"},
        )

        assert result.output.strip() == "2"


class TestSessions:
    """Tests for the agent and shell sessions."""

    def test_agent_args(self):
        """Test the agent command line."""
        agent = AgentSession(claude_path="/opt/claude", extra_flags=["--model", "sonnet"])

        assert agent.build_args() == ["/opt/claude", "-p", "--dangerously-skip-permissions", "--model", "sonnet"]

    @pytest.mark.asyncio
    async def test_agent_receives_prompt_on_stdin(self, tmp_path):
        """Test that the prompt is delivered on stdin."""
        script = tmp_path / "claude"
        script.write_text('#!/usr/bin/env bash\ncat > prompt.txt\necho "$@"\n')
        script.chmod(0o755)

        result = await AgentSession(claude_path=str(script)).run("Build it", cwd=tmp_path)

        assert result.success
        assert (tmp_path / "prompt.txt").read_text() == "Build it"
        assert "--dangerously-skip-permissions" in result.output

    @pytest.mark.asyncio
    async def test_shell_runs_in_project_dir(self, tmp_path):
        """Test that commands run in the given directory."""
        result = await ShellSession().run("pwd", cwd=tmp_path)

        assert Path(result.output.strip()).resolve() == tmp_path.resolve()


class TestWorkerArgs:
    """Tests for the background worker command line."""

    def test_minimal(self):
        """Test forwarding only the task file."""
        assert build_worker_args("tasks.md") == [sys.executable, "-m", "sleepship", "sync", "tasks.md", "--worker"]

    def test_all_flags(self):
        """Test forwarding every flag."""
        args = build_worker_args(
            "tasks.md",
            project_dir="/work",
            log_dir="run-logs",
            start_from=2,
            max_retries=0,
            create_branch=False,
            commit_changes=False,
        )

        assert args[6:] == [
            "--dir",
            "/work",
            "--log-dir",
            "run-logs",
            "--start-from",
            "2",
            "--max-retries",
            "0",
            "--no-branch",
            "--no-commit",
        ]
