"""Integration tests running the engine against a fake coding agent."""

import shutil
import subprocess
from pathlib import Path

import pytest

from sleepship.core.config import RunConfig
from sleepship.core.engine import SyncEngine
from sleepship.history.store import HistoryStore
from sleepship.sessions.recursion import RecursionGuard
from sleepship.sessions.terminal import AgentSession

# Touches the first file named by "create <file>" or "test -f <file>" in the
# prompt, once the prompt contains FAKE_TRIGGER (unset: always).
FAKE_CLAUDE = """#!/usr/bin/env bash
prompt="$(cat)"
calls=$(( $(cat .agent-calls 2>/dev/null || echo 0) + 1 ))
echo "$calls" > .agent-calls
if [ -n "$FAKE_EXIT" ]; then
  echo "FAILED: simulated failure"
  exit "$FAKE_EXIT"
fi
if [ -z "$FAKE_TRIGGER" ] || grep -q "$FAKE_TRIGGER" <<< "$prompt"; then
  file=$(grep -oE '(create|test -f) [a-z.]+' <<< "$prompt" | head -n1 | awk '{print $NF}')
  [ -n "$file" ] && touch "$file"
fi
echo "SUCCESS: this task succeeded"
"""

DOCUMENT = """## Task1: Hello
Please create hello.txt in the project.
- `test -f hello.txt`

## Task2: World
### Dependencies
- 1
### Steps
Please create world.txt in the project.
- `test -f world.txt`
"""


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project with a task document and a fake claude."""
    (tmp_path / "tasks-hello.md").write_text(DOCUMENT, encoding="utf-8")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    claude = bin_dir / "claude"
    claude.write_text(FAKE_CLAUDE)
    claude.chmod(0o755)
    return tmp_path


def make_engine(project: Path, guard: RecursionGuard | None = None, **overrides) -> SyncEngine:
    values = {
        "task_file": project / "tasks-hello.md",
        "project_dir": project,
        "max_retries": 1,
        "create_branch": False,
        "commit_changes": False,
    }
    values.update(overrides)
    config = RunConfig(**values)
    return SyncEngine(
        config,
        agent=AgentSession(claude_path=str(project / "bin" / "claude")),
        guard=guard or RecursionGuard(depth=0),
    )


def agent_calls(project: Path) -> int:
    return int((project / ".agent-calls").read_text().strip())


@pytest.mark.integration
class TestSyncFlow:
    """End-to-end runs with real subprocesses."""

    @pytest.mark.asyncio
    async def test_successful_run(self, project, monkeypatch):
        """Test that every task is implemented and verified."""
        monkeypatch.delenv("FAKE_EXIT", raising=False)
        monkeypatch.delenv("FAKE_TRIGGER", raising=False)

        result = await make_engine(project).run()

        assert result.success
        assert result.executed_tasks == 2
        assert (project / "hello.txt").exists()
        assert (project / "world.txt").exists()
        assert agent_calls(project) == 2

        entries = HistoryStore(project).load().entries
        assert len(entries) == 1
        assert entries[0].success

        log = result.log_file.read_text(encoding="utf-8")
        assert "SUCCESS: this task succeeded" in log

    @pytest.mark.asyncio
    async def test_fix_after_failed_verification(self, project, monkeypatch):
        """Test that the fix prompt repairs a failed verification."""
        monkeypatch.delenv("FAKE_EXIT", raising=False)
        monkeypatch.setenv("FAKE_TRIGGER", "verification command failed")
        (project / "tasks-hello.md").write_text(
            "## Task1: Fix me\nPlease create fixed.txt when asked.\n- `test -f fixed.txt`\n",
            encoding="utf-8",
        )

        result = await make_engine(project).run()

        assert result.success
        assert (project / "fixed.txt").exists()
        # implementation, then one fix
        assert agent_calls(project) == 2

    @pytest.mark.asyncio
    async def test_agent_always_fails(self, project, monkeypatch):
        """Test a run whose agent fails on every attempt."""
        monkeypatch.setenv("FAKE_EXIT", "1")

        result = await make_engine(project, max_retries=2).run()

        assert not result.success
        assert result.failed_task == 1
        assert agent_calls(project) == 3

        entries = HistoryStore(project).load().entries
        assert len(entries) == 1
        assert entries[0].success is False

    @pytest.mark.asyncio
    async def test_nested_invocation_depth(self, project, monkeypatch):
        """Test that a self-invoking verification sees depth + 1."""
        monkeypatch.delenv("FAKE_EXIT", raising=False)
        monkeypatch.delenv("FAKE_TRIGGER", raising=False)
        nested = project / "bin" / "sleepship"
        nested.write_text('#!/usr/bin/env bash\necho "$SLEEPSHIP_DEPTH" > depth.txt\n')
        nested.chmod(0o755)
        (project / "tasks-hello.md").write_text(
            "## Task1: Nested\nRun the nested document.\n- `./bin/sleepship sync nested.md`\n",
            encoding="utf-8",
        )

        result = await make_engine(project, guard=RecursionGuard(depth=1, max_depth=3)).run()

        assert result.success
        assert (project / "depth.txt").read_text().strip() == "2"

    @pytest.mark.asyncio
    async def test_nested_invocation_skipped_at_limit(self, project, monkeypatch):
        """Test that the depth limit skips the nested run without failing."""
        monkeypatch.delenv("FAKE_EXIT", raising=False)
        (project / "tasks-hello.md").write_text(
            "## Task1: Nested\nRun the nested document.\n- `sleepship sync nested.md`\n",
            encoding="utf-8",
        )

        result = await make_engine(project, guard=RecursionGuard(depth=3, max_depth=3)).run()

        assert result.success
        assert result.executed_tasks == 1


@pytest.mark.integration
@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
class TestGitFlow:
    """Runs that create a branch and commit each task."""

    @pytest.mark.asyncio
    async def test_branch_and_commits(self, project, monkeypatch):
        """Test one branch per run and one commit per task."""
        monkeypatch.delenv("FAKE_EXIT", raising=False)
        monkeypatch.delenv("FAKE_TRIGGER", raising=False)
        for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
            monkeypatch.setenv(key, "Sleepship Test")
        for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
            monkeypatch.setenv(key, "test@example.com")

        def git(*args: str) -> str:
            return subprocess.run(
                ["git", *args], cwd=project, check=True, capture_output=True, text=True
            ).stdout

        git("init", "-q")
        git("add", ".")
        git("commit", "-q", "-m", "initial")

        result = await make_engine(project, create_branch=True, commit_changes=True).run()

        assert result.success
        assert result.branch_name == "feature/hello"
        assert git("rev-parse", "--abbrev-ref", "HEAD").strip() == "feature/hello"
        subjects = git("log", "--format=%s").splitlines()
        assert subjects[0].startswith("Task 2: 2: World")
        assert subjects[1].startswith("Task 1: 1: Hello")
