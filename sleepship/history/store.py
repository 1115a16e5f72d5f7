"""Execution history - one JSON entry per run of a task document.

The history file lives at ``<project>/.sleepship/history.json`` and holds a
JSON array of entries in append order. ``record`` is a plain
read-modify-write: the rewrite itself is atomic (temp file + rename), but
there is no lock, so two runs finishing at the same moment in the same
project directory can lose one of their entries.
"""

import json
import os
import tempfile
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from sleepship.core.exceptions import HistoryReadError, HistoryWriteError

HISTORY_DIR = ".sleepship"
HISTORY_FILE = "history.json"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# MODELS
# =============================================================================


class HistoryEntry(BaseModel):
    """Outcome of one run of a task document."""

    model_config = ConfigDict(frozen=True)

    task_file: str
    executed_at: datetime = Field(default_factory=utc_now)
    success: bool
    duration: timedelta = Field(default=timedelta(0))
    task_count: int = Field(default=0, ge=0)
    error_message: str = ""
    start_from: int = Field(default=1, ge=1)
    max_retries: int = Field(default=0, ge=0)
    branch_name: str = ""


_ENTRIES = TypeAdapter(list[HistoryEntry])


class History:
    """
    Ordered, append-only collection of history entries.

    Example:
        >>> history = HistoryStore("/path/to/project").load()
        >>> [e.task_file for e in history.last(2)]
        ['tasks-a.md', 'tasks-b.md']
    """

    def __init__(self, entries: list[HistoryEntry] | None = None) -> None:
        self._entries: list[HistoryEntry] = list(entries or [])

    @property
    def entries(self) -> list[HistoryEntry]:
        """Copy of all entries, oldest first."""
        return list(self._entries)

    def add(self, entry: HistoryEntry) -> None:
        """Append an entry."""
        self._entries.append(entry)

    def last(self, n: int) -> list[HistoryEntry]:
        """The last ``n`` entries (all of them when ``n`` exceeds the count)."""
        if n <= 0:
            return []
        return list(self._entries[-n:])

    def failed(self) -> list[HistoryEntry]:
        """Entries of failed runs."""
        return [e for e in self._entries if not e.success]

    def succeeded(self) -> list[HistoryEntry]:
        """Entries of successful runs."""
        return [e for e in self._entries if e.success]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))

    def __bool__(self) -> bool:
        return bool(self._entries)


# =============================================================================
# STORE
# =============================================================================


class HistoryStore:
    """Loads and appends to the history file of a project directory."""

    def __init__(self, project_dir: str | Path) -> None:
        self.project_dir = Path(project_dir)

    @property
    def path(self) -> Path:
        """Absolute path of the history file."""
        return self.project_dir / HISTORY_DIR / HISTORY_FILE

    def load(self) -> History:
        """
        Load the history.

        Returns:
            History; empty when the file does not exist yet.

        Raises:
            HistoryReadError: If the file cannot be read or parsed.
        """
        if not self.path.exists():
            return History()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise HistoryReadError(f"failed to read history file {self.path}: {e}") from e

        # Older files wrap the array in an object and store durations as integer nanoseconds
        if isinstance(raw, dict):
            raw = raw.get("entries") or []
            if isinstance(raw, list):
                raw = [_from_legacy(item) for item in raw]

        try:
            return History(_ENTRIES.validate_python(raw))
        except ValidationError as e:
            raise HistoryReadError(f"failed to parse history file {self.path}: {e}") from e

    def save(self, history: History) -> None:
        """
        Rewrite the history file.

        Raises:
            HistoryWriteError: If the file cannot be written.
        """
        data: list[dict[str, Any]] = [e.model_dump(mode="json") for e in history.entries]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".history-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise HistoryWriteError(f"failed to write history file {self.path}: {e}") from e

    def record(self, entry: HistoryEntry) -> None:
        """
        Append one entry and persist it.

        Raises:
            HistoryWriteError: If the current file cannot be loaded or the
                new one cannot be written.
        """
        try:
            history = self.load()
        except HistoryReadError as e:
            raise HistoryWriteError(str(e)) from e

        history.add(entry)
        self.save(history)
        logger.debug(f"Recorded history entry for {entry.task_file} (success={entry.success})")


def _from_legacy(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    duration = item.get("duration")
    if isinstance(duration, int) and not isinstance(duration, bool):
        return {**item, "duration": timedelta(microseconds=duration / 1000)}
    return item
