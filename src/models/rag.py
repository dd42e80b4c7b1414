"""Retrieval-augmented Q&A data models for the event knowledge base.

RAG flow over one event's documents:

    1. INGESTION: an uploaded PDF/image is turned into text and split into
       overlapping windows (``src/services/ingestion/``).
    2. EMBEDDING: each window becomes a fixed-dimension vector.
    3. STORAGE: vectors are upserted into the namespace named after the
       event, with IDs ``{storagePath}#{chunkIndex}``.
    4. RETRIEVAL: a question is embedded and the top matches above the
       similarity threshold are labelled ``[Source 1]..[Source N]``.
    5. GENERATION: the LLM answers from those sources only, and each source
       becomes a :class:`Citation`.

All models use frozen config.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def make_vector_id(storage_path: str, chunk_index: int) -> str:
    """Deterministic vector ID; re-ingesting a path overwrites its vectors."""
    return f"{storage_path}#{chunk_index}"


def document_id_from_path(storage_path: str) -> str:
    """Final path segment of a storage path, used as the document id."""
    return storage_path.rstrip("/").rsplit("/", 1)[-1]


class VectorRecord(BaseModel):
    """A vector ready for upsert into a namespace."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="storagePath#chunkIndex")
    values: list[float] = Field(description="Embedding vector.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="eventId, storagePath, chunkIndex, text, ingestedAt, isImageFallback.",
    )


class VectorMatch(BaseModel):
    """One similarity-search hit.  ``score`` is cosine similarity in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """A match that survived the similarity threshold, in rank order."""

    model_config = ConfigDict(frozen=True)

    source_number: int = Field(ge=1, description="1-based label used as [Source N].")
    text: str
    storage_path: str
    chunk_index: int = Field(ge=0)
    score: float


class RetrievalResult(BaseModel):
    """Retained chunks plus the assembled prompt context."""

    model_config = ConfigDict(frozen=True)

    chunks: list[RetrievedChunk] = Field(default_factory=list)
    context: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.chunks


class Citation(BaseModel):
    """Pointer from an answer back to the chunk it drew on."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    document_name: str
    chunk_index: int
    excerpt: str = Field(description="At most 200 chars, plus '...' when truncated.")
    storage_path: str


class Answer(BaseModel):
    """Synthesised answer with its supporting citations."""

    model_config = ConfigDict(frozen=True)

    text: str
    citations: list[Citation] = Field(default_factory=list)
