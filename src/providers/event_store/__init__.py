"""Event metadata store implementations."""

from src.providers.event_store.sqlite_event_store import SQLiteEventStore

__all__ = ["SQLiteEventStore"]
