"""Abstract base class for the event metadata store.

Holds every structured record an event owns: the event itself, its
participants and the users' mirrored membership fields, document display
records, per-asset ingestion status, and stories/snaps.  Batch mutation
methods take id lists of at most one teardown batch (100) and return the
number of rows affected, so a re-run over already-deleted ids returns 0
instead of raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.models.event import Asset, Document, Event, Participant, Story, StoryKind, User


# Concrete implementation: SQLiteEventStore (src/providers/event_store/)
class IEventStore(ABC):
    """Contract for event-scoped record persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if they don't exist.  Safe to call repeatedly."""

    # -- Events ------------------------------------------------------------

    @abstractmethod
    async def get_event(self, event_id: str) -> Event | None:
        """Return the event, or ``None`` when it does not exist."""

    @abstractmethod
    async def save_event(self, event: Event) -> None:
        """Insert or replace an event record."""

    @abstractmethod
    async def list_events_ended_before(self, cutoff: datetime) -> list[Event]:
        """Return events whose ``end_time <= cutoff``, oldest first.

        Events no longer ``active`` (a teardown started but left the record)
        are included whatever their end time.
        """

    @abstractmethod
    async def list_events_ended_after(self, cutoff: datetime) -> list[Event]:
        """Return ``active`` events whose ``end_time > cutoff`` (still within their lifetime)."""

    @abstractmethod
    async def delete_event(self, event_id: str) -> bool:
        """Delete the event record; ``False`` when it was already gone."""

    # -- Participants & users ----------------------------------------------

    @abstractmethod
    async def get_participant(self, event_id: str, user_id: str) -> Participant | None:
        """Return the membership row, or ``None``."""

    @abstractmethod
    async def save_participant(self, participant: Participant) -> None:
        """Insert or replace a membership row."""

    @abstractmethod
    async def list_participants(self, event_id: str) -> list[Participant]:
        """Return every membership row for the event."""

    @abstractmethod
    async def delete_participants(self, event_id: str, user_ids: list[str]) -> int:
        """Delete membership rows for *user_ids* within the event."""

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None:
        """Return the user profile, or ``None``."""

    @abstractmethod
    async def save_user(self, user: User) -> None:
        """Insert or replace a user profile."""

    @abstractmethod
    async def clear_user_event_fields(self, event_id: str, user_ids: list[str]) -> int:
        """Null out ``active_event_id`` and ``event_role`` on the given users.

        Only users whose ``active_event_id`` is *event_id* are touched.
        """

    # -- Documents & assets ------------------------------------------------

    @abstractmethod
    async def get_document(self, event_id: str, document_id: str) -> Document | None:
        """Return the event's display record for a document id, or ``None``."""

    @abstractmethod
    async def save_document(self, document: Document) -> None:
        """Insert or replace a document display record."""

    @abstractmethod
    async def list_documents(self, event_id: str) -> list[Document]:
        """Return every document record for the event."""

    @abstractmethod
    async def delete_documents(self, event_id: str, document_ids: list[str]) -> int:
        """Delete the event's document records by id."""

    @abstractmethod
    async def get_asset(self, storage_path: str) -> Asset | None:
        """Return the ingestion status record, or ``None``."""

    @abstractmethod
    async def upsert_asset(self, asset: Asset) -> None:
        """Insert or overwrite the ingestion status record for a storage path."""

    @abstractmethod
    async def list_assets(self, event_id: str) -> list[Asset]:
        """Return every asset record for the event."""

    @abstractmethod
    async def delete_assets(self, storage_paths: list[str]) -> int:
        """Delete asset records by storage path."""

    # -- Stories -----------------------------------------------------------

    @abstractmethod
    async def save_story(self, story: Story) -> None:
        """Insert or replace a story/snap record."""

    @abstractmethod
    async def list_stories(self, event_id: str, kind: StoryKind | None = None) -> list[Story]:
        """Return the event's stories, optionally restricted to one kind."""

    @abstractmethod
    async def delete_stories(self, story_ids: list[str]) -> int:
        """Delete story/snap records by id."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite_events"``."""
