"""Ingestion pipeline models.

An asset moves through ``IngestionStage`` in order.  Any failure aborts the
run at the stage it reached; the asset record is only written at ``DONE``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IngestionStage(str, Enum):
    UPLOADED = "uploaded"
    EXTRACTED = "extracted"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    UPSERTED = "upserted"
    DONE = "done"


class ExtractedContent(BaseModel):
    """Output of the content extractor.

    For the image fallback path ``text`` is empty, ``is_fallback`` is set
    and ``raw_bytes`` holds the original image for direct embedding.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    content_type: str
    is_fallback: bool = False
    raw_bytes: bytes | None = None
    page_count: int | None = None


class IngestionResult(BaseModel):
    """Outcome of ingesting one storage path."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    storage_path: str
    chunks: int = Field(ge=0)
    stage: IngestionStage = IngestionStage.DONE
    image_fallback: bool = False
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.stage is IngestionStage.DONE
