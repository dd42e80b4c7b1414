"""Event-scoped records held in the metadata store.

An :class:`Event` owns its participants, documents, assets, stories and the
vector namespace named after its ``event_id``.  Ownership is enforced by
the teardown saga (``src/services/lifecycle/teardown_saga.py``) rather than
by foreign keys, because the records live in independent stores.

All models use frozen config; "updates" are new instances via
``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    EXPIRED = "expired"


class StoryKind(str, Enum):
    """Ephemeral post flavours; both are removed with their event."""

    STORY = "story"
    SNAP = "snap"


class Event(BaseModel):
    """A hosted, time-boxed event."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(description="Unique event identifier; also the vector namespace.")
    host_id: str = Field(description="User id of the event host.")
    name: str = Field(default="", description="Display name.")
    start_time: datetime = Field(description="Scheduled start (timezone-aware, UTC).")
    end_time: datetime = Field(description="Scheduled end (timezone-aware, UTC).")
    status: EventStatus = Field(default=EventStatus.ACTIVE)

    def is_expired(self, now: datetime, grace: timedelta) -> bool:
        """Return ``True`` once *grace* has elapsed after ``end_time``."""
        return now >= self.end_time + grace


class Participant(BaseModel):
    """Membership of one user in one event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    user_id: str
    role: str = Field(default="attendee", description='"host" or "attendee".')


class User(BaseModel):
    """User profile.  ``active_event_id``/``event_role`` mirror the participant row."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str = ""
    active_event_id: str | None = None
    event_role: str | None = None


class Document(BaseModel):
    """Display record for an uploaded document, used for citation names."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Final segment of the storage path.")
    event_id: str
    name: str
    storage_path: str


class Asset(BaseModel):
    """Ingestion status of one stored file.

    Written only when ingestion reaches ``Done``; absence means the file
    was never (fully) indexed.
    """

    model_config = ConfigDict(frozen=True)

    storage_path: str = Field(description="Unique key: events/{eventId}/docs/{file}.")
    event_id: str
    embedded: bool = Field(default=False)
    chunk_count: int = Field(default=0, ge=0)
    updated_at: datetime

    def to_record(self) -> dict[str, object]:
        """Render the persisted ``{storagePath, embedded, chunks, updatedAt}`` shape."""
        return {
            "storagePath": self.storage_path,
            "embedded": self.embedded,
            "chunks": self.chunk_count,
            "updatedAt": self.updated_at.isoformat(),
        }


class Story(BaseModel):
    """A story or snap posted during an event, backed by an image file."""

    model_config = ConfigDict(frozen=True)

    story_id: str
    event_id: str
    kind: StoryKind = StoryKind.STORY
    author_id: str = ""
    image_path: str | None = Field(default=None, description="Storage path of the image, if any.")
    created_at: datetime | None = None
