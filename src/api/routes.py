"""FastAPI API routes for eventkb.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.  Routes translate between the
camelCase wire schemas and the services; every authorisation decision and
every error lives in the services, and ``ErrorHandlingMiddleware`` turns
raised errors into ``{"error": kind, "detail": message}`` bodies.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                        Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/storage/finalize        POST    Upload trigger → ingestion (or skip)
# /api/v1/documents/ingest        POST    Ingest one stored file explicitly
# /api/v1/questions/answer        POST    Grounded answer with citations
# /api/v1/events/end              POST    Host ends event → full teardown
# /api/v1/events/cleanup          POST    Expired/forced/host teardown
# /api/v1/health                  GET     Health check + provider status
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request

from src.api.auth import CallerIdDep
from src.api.schemas import (
    AnswerQuestionRequest,
    AnswerQuestionResponse,
    CleanupRequest,
    CleanupResponse,
    EndEventRequest,
    EndEventResponse,
    ErrorResponse,
    HealthResponse,
    IngestDocumentRequest,
    IngestDocumentResponse,
    StorageFinalizeRequest,
    StorageFinalizeResponse,
)
from src.services.ingestion.ingestion_service import IngestionService
from src.services.lifecycle.lifecycle_service import EventLifecycleService
from src.services.qa_service import QAService
from src.utils.errors import AuthenticationRequired
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependency injection helpers -- resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_qa_service(request: Request) -> QAService:
    """Return the Q&A service from application state."""
    return request.app.state.qa_service


def _get_lifecycle_service(request: Request) -> EventLifecycleService:
    """Return the lifecycle service from application state."""
    return request.app.state.lifecycle_service


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
QADep = Annotated[QAService, Depends(_get_qa_service)]
LifecycleDep = Annotated[EventLifecycleService, Depends(_get_lifecycle_service)]


def _require_caller(caller_id: str | None) -> str:
    if not caller_id:
        raise AuthenticationRequired("User must be authenticated")
    return caller_id


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/storage/finalize",
    response_model=StorageFinalizeResponse,
    responses=_ERROR_RESPONSES,
    summary="Object-finalized trigger",
)
async def storage_finalize(
    body: StorageFinalizeRequest,
    caller_id: CallerIdDep,
    ingestion: IngestionDep,
) -> StorageFinalizeResponse:
    """Ingest a newly stored file when it is an event document.

    Paths outside ``events/{eventId}/docs/`` and content types other than
    PDF or image are acknowledged with ``handled = false``.
    """
    _require_caller(caller_id)
    result = await ingestion.handle_object_finalized(body.storage_path, body.content_type)
    if result is None:
        return StorageFinalizeResponse(handled=False, chunks=0)
    return StorageFinalizeResponse(handled=True, chunks=result.chunks)


@router.post(
    "/documents/ingest",
    response_model=IngestDocumentResponse,
    responses=_ERROR_RESPONSES,
    summary="Ingest one stored document",
)
async def ingest_document(
    body: IngestDocumentRequest,
    caller_id: CallerIdDep,
    ingestion: IngestionDep,
) -> IngestDocumentResponse:
    """Extract, chunk, embed and index one file already in storage."""
    caller = _require_caller(caller_id)
    _logger.info("ingest_requested", event_id=body.event_id, caller_id=caller)
    result = await ingestion.ingest_document(body.event_id, body.storage_path)
    return IngestDocumentResponse(success=result.success, chunks=result.chunks)


# ---------------------------------------------------------------------------
# Q&A
# ---------------------------------------------------------------------------


@router.post(
    "/questions/answer",
    response_model=AnswerQuestionResponse,
    responses=_ERROR_RESPONSES,
    summary="Answer a question from the event's documents",
)
async def answer_question(
    body: AnswerQuestionRequest,
    caller_id: CallerIdDep,
    qa: QADep,
) -> AnswerQuestionResponse:
    answer = await qa.answer_question(caller_id, body.event_id, body.user_id, body.question)
    return AnswerQuestionResponse.from_answer(answer)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post(
    "/events/end",
    response_model=EndEventResponse,
    responses=_ERROR_RESPONSES,
    summary="End an event and delete all of its data",
)
async def end_event(
    body: EndEventRequest,
    caller_id: CallerIdDep,
    lifecycle: LifecycleDep,
) -> EndEventResponse:
    """Host-only.  Step failures other than the event record are reported in logs."""
    report = await lifecycle.end_event(caller_id, body.event_id, body.user_id)
    return EndEventResponse.from_report(report)


@router.post(
    "/events/cleanup",
    response_model=CleanupResponse,
    responses=_ERROR_RESPONSES,
    summary="Delete an expired event's content",
)
async def cleanup_event(
    body: CleanupRequest,
    caller_id: CallerIdDep,
    lifecycle: LifecycleDep,
) -> CleanupResponse:
    """Allowed for the host, for anyone 24 h after the event ended, or when forced."""
    report = await lifecycle.delete_expired_content(caller_id, body.event_id, body.force_delete)
    return CleanupResponse.from_report(report)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    state = request.app.state
    providers: dict[str, Any] = {}
    for key in ("embedding_provider", "vector_store", "llm_provider", "ocr_provider"):
        provider = getattr(state, key, None)
        if provider is None:
            providers[key] = False
            continue
        try:
            providers[key] = bool(provider.is_available())
        except Exception:  # noqa: BLE001
            providers[key] = False

    scheduler = getattr(state, "sweep_scheduler", None)
    providers["sweep_scheduler"] = bool(scheduler is not None and scheduler.running)

    critical = ("embedding_provider", "vector_store", "llm_provider")
    if all(providers[k] for k in critical):
        status = "healthy" if providers["ocr_provider"] else "degraded"
    else:
        status = "unhealthy"

    config = getattr(state, "config", {}) or {}
    return HealthResponse(
        status=status,
        version=str(config.get("app", {}).get("version", "0.1.0")),
        providers=providers,
    )
