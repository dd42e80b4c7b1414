"""Shared pytest fixtures for the eventkb test suite."""

from __future__ import annotations

import hashlib
import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import fitz
import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.event import Asset, Document, Event, Participant, Story, StoryKind, User
from src.models.rag import VectorMatch, VectorRecord
from src.providers.event_store.sqlite_event_store import SQLiteEventStore
from src.providers.storage.local_storage import LocalObjectStorage

# ---------------------------------------------------------------------------
# Deterministic in-memory providers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector derived from SHA-256 of *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b / 127.5) - 1.0 for b in raw[:dim]]
    norm = math.sqrt(sum(v * v for v in values)) or 1.0
    return [v / norm for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.binary_calls: list[bytes] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.extend(texts)
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        return _hash_to_vector(text)

    async def embed_binary(self, data: bytes) -> list[float]:
        self.binary_calls.append(data)
        return _hash_to_vector(data.hex())

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """Namespace → {id → record} dict with cosine-similarity query."""

    def __init__(self) -> None:
        self.namespaces: dict[str, dict[str, VectorRecord]] = {}
        self.upsert_batches: list[int] = []

    async def upsert(self, namespace: str, records: list[VectorRecord], batch_size: int = 100) -> int:
        bucket = self.namespaces.setdefault(namespace, {})
        for start in range(0, len(records), batch_size):
            batch = records[start : start + batch_size]
            self.upsert_batches.append(len(batch))
            for record in batch:
                bucket[record.id] = record
        return len(records)

    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        bucket = self.namespaces.get(namespace, {})
        scored = [
            VectorMatch(
                id=record.id,
                score=sum(a * b for a, b in zip(vector, record.values, strict=False)),
                metadata=dict(record.metadata) if include_metadata else {},
            )
            for record in bucket.values()
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    async def delete_namespace(self, namespace: str) -> None:
        self.namespaces.pop(namespace, None)

    async def list_records(self, namespace: str) -> list[dict[str, Any]]:
        return [
            {"id": record.id, "metadata": dict(record.metadata)}
            for record in self.namespaces.get(namespace, {}).values()
        ]

    async def delete_records(self, namespace: str, ids: list[str]) -> int:
        bucket = self.namespaces.get(namespace, {})
        return sum(1 for i in ids if bucket.pop(i, None) is not None)

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_embedding() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
async def event_store(tmp_path: Path) -> SQLiteEventStore:
    store = SQLiteEventStore(db_path=tmp_path / "events.db")
    await store.initialize()
    return store


@pytest.fixture
def object_storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(root=tmp_path / "storage")


@pytest.fixture
def make_event(now: datetime):
    """Factory for events ending *ended_hours_ago* hours before ``now``."""

    def _make(event_id: str = "ev1", host_id: str = "host1", ended_hours_ago: float = 1.0) -> Event:
        end = now - timedelta(hours=ended_hours_ago)
        return Event(
            event_id=event_id,
            host_id=host_id,
            name=f"Event {event_id}",
            start_time=end - timedelta(hours=4),
            end_time=end,
        )

    return _make


@pytest.fixture
async def populated_event(event_store, object_storage, mock_vector_store, make_event, now):
    """An event with participants, a document, stories and vectors.

    Returns the event id.  Layout:
      - host1 (host) and u1, u2 (attendees), users mirroring membership
      - one PDF document with asset record and two vectors
      - one story and one snap with images outside the event prefix
      - one stray file under the event prefix
    """
    event = make_event()
    await event_store.save_event(event)

    for user_id, role in (("host1", "host"), ("u1", "attendee"), ("u2", "attendee")):
        await event_store.save_user(User(user_id=user_id, active_event_id="ev1", event_role=role))
        await event_store.save_participant(Participant(event_id="ev1", user_id=user_id, role=role))

    doc_path = "events/ev1/docs/agenda.pdf"
    await object_storage.write(doc_path, b"%PDF-fake", "application/pdf")
    await event_store.save_document(
        Document(document_id="agenda.pdf", event_id="ev1", name="Agenda", storage_path=doc_path)
    )
    await event_store.upsert_asset(
        Asset(storage_path=doc_path, event_id="ev1", embedded=True, chunk_count=2, updated_at=now)
    )
    await mock_vector_store.upsert(
        "ev1",
        [
            VectorRecord(id=f"{doc_path}#{i}", values=[1.0, 0.0], metadata={"storagePath": doc_path})
            for i in range(2)
        ],
    )

    for story_id, kind in (("s1", StoryKind.STORY), ("s2", StoryKind.SNAP)):
        image = f"stories/{story_id}.jpg"
        await object_storage.write(image, b"jpeg", "image/jpeg")
        await event_store.save_story(
            Story(story_id=story_id, event_id="ev1", kind=kind, author_id="u1", image_path=image,
                  created_at=now)
        )

    await object_storage.write("events/ev1/misc/banner.png", b"png", "image/png")
    return "ev1"


# ---------------------------------------------------------------------------
# Document builders
# ---------------------------------------------------------------------------


def make_pdf_bytes(pages: list[list[str]]) -> bytes:
    """Build a PDF with one text line per entry, one page per inner list."""
    doc = fitz.open()
    try:
        for lines in pages:
            page = doc.new_page()
            y = 40
            for line in lines:
                page.insert_text((36, y), line, fontsize=8)
                y += 11
        return doc.tobytes()
    finally:
        doc.close()


def make_long_pdf(total_lines: int = 70, line_length: int = 99) -> bytes:
    """About ``total_lines * (line_length + 1)`` characters of extractable text."""
    lines = [
        "".join(chr(ord("a") + (i + j) % 26) for j in range(line_length))
        for i in range(total_lines)
    ]
    half = total_lines // 2
    return make_pdf_bytes([lines[:half], lines[half:]])
