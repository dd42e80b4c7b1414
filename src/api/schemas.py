"""Pydantic request/response schemas for the eventkb API.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# These models define the *shape* of every HTTP request and response
# body.  FastAPI uses them for validation (bad input never reaches a
# service), serialization (``response_model=...``) and the generated
# OpenAPI docs at /docs.
#
# Wire format is camelCase (``eventId``, ``storagePath``) while Python
# code stays snake_case: ``_CamelModel`` sets an alias generator and
# ``populate_by_name`` so either spelling is accepted on input, and
# routes return ``response_model_by_alias`` output (the FastAPI default).
#
# Convention: Request schemas end with "Request", response schemas
# end with "Response".
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.rag import Answer
from src.models.teardown import TeardownReport


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class IngestDocumentRequest(_CamelModel):
    """Explicit ingestion of one stored file."""

    event_id: str = Field(..., min_length=1, max_length=256)
    storage_path: str = Field(..., min_length=1, max_length=1024)


class IngestDocumentResponse(_CamelModel):
    success: bool
    chunks: int = Field(ge=0)


class StorageFinalizeRequest(_CamelModel):
    """Object-finalized notification from the storage layer."""

    storage_path: str = Field(..., min_length=1, max_length=1024)
    content_type: str | None = Field(default=None, max_length=255)


class StorageFinalizeResponse(_CamelModel):
    handled: bool = Field(description="False when the path or content type is not ingested.")
    chunks: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Q&A
# ---------------------------------------------------------------------------


class AnswerQuestionRequest(_CamelModel):
    event_id: str = Field(..., min_length=1, max_length=256)
    user_id: str = Field(..., min_length=1, max_length=256)
    question: str = Field(..., min_length=1, max_length=2000)


class CitationResponse(_CamelModel):
    document_id: str
    document_name: str
    chunk_index: int
    excerpt: str
    storage_path: str


class AnswerQuestionResponse(_CamelModel):
    text: str
    citations: list[CitationResponse] = Field(default_factory=list)

    @classmethod
    def from_answer(cls, answer: Answer) -> AnswerQuestionResponse:
        return cls(
            text=answer.text,
            citations=[CitationResponse(**c.model_dump()) for c in answer.citations],
        )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class EndEventRequest(_CamelModel):
    event_id: str = Field(..., min_length=1, max_length=256)
    user_id: str = Field(..., min_length=1, max_length=256)


class DeletedItems(_CamelModel):
    participants: int = 0
    documents: int = 0
    stories: int = Field(default=0, description="Stories and snaps together.")
    storage_files: int = 0
    vectors_deleted: bool = False


class EndEventResponse(_CamelModel):
    success: bool
    deleted_items: DeletedItems

    @classmethod
    def from_report(cls, report: TeardownReport) -> EndEventResponse:
        return cls(
            success=True,
            deleted_items=DeletedItems(
                participants=report.participants,
                documents=report.documents,
                stories=report.stories + report.snaps,
                storage_files=report.storage_files,
                vectors_deleted=report.vectors_deleted,
            ),
        )


class CleanupRequest(_CamelModel):
    event_id: str = Field(..., min_length=1, max_length=256)
    force_delete: bool = False


class CleanupResult(_CamelModel):
    event_id: str
    deleted_stories: int = 0
    deleted_snaps: int = 0
    deleted_assets: int = 0
    deleted_vectors: int = Field(default=0, description="1 when the namespace was dropped.")
    errors: list[str] = Field(default_factory=list)


class CleanupResponse(_CamelModel):
    success: bool
    result: CleanupResult

    @classmethod
    def from_report(cls, report: TeardownReport) -> CleanupResponse:
        return cls(
            success=True,
            result=CleanupResult(
                event_id=report.event_id,
                deleted_stories=report.stories,
                deleted_snaps=report.snaps,
                deleted_assets=report.assets,
                deleted_vectors=1 if report.vectors_deleted else 0,
                errors=[str(e) for e in report.errors],
            ),
        )


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
