"""Execution history store."""

from sleepship.history.store import History, HistoryEntry, HistoryStore

__all__ = ["History", "HistoryEntry", "HistoryStore"]
