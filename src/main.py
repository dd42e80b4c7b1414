"""eventkb FastAPI application entry point.

Wires together all providers, services, and routes via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``,
configures structured logging, and starts the daily expired-event sweep.

``_build_all`` is shared with the CLI (``python -m src.cli``) so both entry
points run the exact same object graph.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    validation_error_handler,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.event_store.sqlite_event_store import SQLiteEventStore
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.ocr.tesseract_provider import TesseractOCRProvider
from src.providers.storage.local_storage import LocalObjectStorage
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.answer_synthesizer import AnswerSynthesizer
from src.services.ingestion import ContentExtractor, IngestionService, TextChunker
from src.services.lifecycle import (
    EventLifecycleService,
    OrphanReconciler,
    SweepScheduler,
    TeardownSaga,
)
from src.services.qa_service import QAService
from src.services.retrieval_service import RetrievalService
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# LLM provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Honour ``LLM_PROVIDER`` when set, else prefer Anthropic, then OpenAI.

    Raises
    ------
    ConfigurationError
        If the requested provider has no key, or no provider is configured.
    """
    requested = (app_settings.llm_provider or "").strip().lower()
    available = app_settings.get_available_llm_providers()

    if requested:
        if requested not in available:
            raise ConfigurationError(
                f"LLM_PROVIDER={requested!r} but its API key is not set "
                f"(available: {', '.join(available) or 'none'})"
            )
        choice = requested
    elif available:
        choice = "anthropic" if "anthropic" in available else available[0]
    else:
        raise ConfigurationError("No LLM provider configured; set ANTHROPIC_API_KEY or OPENAI_API_KEY")

    if choice == "anthropic":
        return AnthropicLLMProvider(settings=app_settings)
    return OpenAILLMProvider(settings=app_settings)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here touches the network or the database; the event store is
    initialised by the caller.
    """
    config = config or load_config(settings=app_settings)
    ingestion_cfg = config["ingestion"]
    retrieval_cfg = config["retrieval"]
    llm_cfg = config["llm"]
    lifecycle_cfg = config["lifecycle"]
    timeouts = config["timeouts"]

    # -- Providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    vector_store = ChromaDBProvider(persist_directory=app_settings.chromadb_persist_dir)
    ocr_provider = TesseractOCRProvider()
    llm_provider = _build_llm_provider(app_settings)
    event_store = SQLiteEventStore(db_path=app_settings.event_db_path)
    object_storage = LocalObjectStorage(root=app_settings.storage_root)
    cache = MemoryCacheProvider()

    # -- Ingestion --
    ingestion_service = IngestionService(
        extractor=ContentExtractor(ocr_provider),
        chunker=TextChunker(
            chunk_size=ingestion_cfg["chunk_size"],
            overlap=ingestion_cfg["chunk_overlap"],
        ),
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        event_store=event_store,
        object_storage=object_storage,
        embedding_concurrency=ingestion_cfg["embedding_concurrency"],
        upsert_batch_size=ingestion_cfg["upsert_batch_size"],
        timeout_seconds=timeouts["ingestion"],
    )

    # -- Retrieval & Q&A --
    retrieval_service = RetrievalService(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        top_k=retrieval_cfg["top_k"],
        similarity_threshold=retrieval_cfg["similarity_threshold"],
    )
    synthesizer = AnswerSynthesizer(
        llm=llm_provider,
        event_store=event_store,
        cache=cache,
        temperature=llm_cfg["temperature"],
        max_tokens=llm_cfg["max_tokens"],
        excerpt_chars=llm_cfg["excerpt_chars"],
    )
    qa_service = QAService(
        event_store=event_store,
        retrieval=retrieval_service,
        synthesizer=synthesizer,
        timeout_seconds=timeouts["request"],
    )

    # -- Lifecycle --
    saga = TeardownSaga(
        event_store=event_store,
        vector_store=vector_store,
        object_storage=object_storage,
        cache=cache,
        batch_size=lifecycle_cfg["batch_size"],
    )
    reconciler = (
        OrphanReconciler(
            event_store=event_store,
            vector_store=vector_store,
            min_age_seconds=lifecycle_cfg["orphan_min_age_seconds"],
        )
        if lifecycle_cfg["reconcile_orphans"]
        else None
    )
    lifecycle_service = EventLifecycleService(
        event_store=event_store,
        saga=saga,
        reconciler=reconciler,
        grace_period=timedelta(hours=lifecycle_cfg["grace_period_hours"]),
        timeout_seconds=timeouts["teardown"],
    )
    sweep_scheduler = SweepScheduler(
        lifecycle=lifecycle_service,
        hour=lifecycle_cfg["sweep_hour"],
        minute=lifecycle_cfg["sweep_minute"],
    )

    return {
        "settings": app_settings,
        "config": config,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "ocr_provider": ocr_provider,
        "llm_provider": llm_provider,
        "event_store": event_store,
        "object_storage": object_storage,
        "cache": cache,
        "ingestion_service": ingestion_service,
        "retrieval_service": retrieval_service,
        "qa_service": qa_service,
        "lifecycle_service": lifecycle_service,
        "orphan_reconciler": reconciler,
        "sweep_scheduler": sweep_scheduler,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    app_settings: Settings = getattr(application.state, "settings", None) or settings
    components = _build_all(app_settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["event_store"].initialize()

    scheduler: SweepScheduler = components["sweep_scheduler"]
    if app_settings.sweep_enabled:
        scheduler.start()

    _logger.info(
        "app_startup",
        version=components["config"]["app"]["version"],
        environment=app_settings.app_env,
        llm=components["llm_provider"].get_provider_name(),
        embedding=components["embedding_provider"].get_provider_name(),
        vector_store=components["vector_store"].get_provider_name(),
        sweep_enabled=app_settings.sweep_enabled,
        auth_mode="token" if app_settings.auth_secret else "development",
    )

    yield

    scheduler.shutdown()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    application = FastAPI(
        title="eventkb API",
        version="0.1.0",
        description=(
            "Per-event knowledge base: ingest uploaded documents, answer "
            "participant questions with citations, and delete everything an "
            "event owns when it ends."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=app_settings.get_cors_origins())
    application.add_exception_handler(RequestValidationError, validation_error_handler)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
