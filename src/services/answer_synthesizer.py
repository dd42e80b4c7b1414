"""Grounded answer generation and citation assembly.

The system prompt confines the model to the retrieved event documents and
asks for ``[Source N]`` markers; the user turn carries the literal
question.  Each retained chunk becomes one :class:`Citation`, whose display
name comes from the event's document record, falling back to
``"Document N"`` when the record is missing or the lookup fails.
"""

from __future__ import annotations

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.event_store import IEventStore
from src.interfaces.llm_provider import ILLMProvider
from src.models.rag import Answer, Citation, RetrievalResult, RetrievedChunk, document_id_from_path
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

_SYSTEM_PROMPT_TEMPLATE = (
    "You are an AI assistant helping attendees at an event. You have access to event "
    "documents and should provide helpful, accurate answers based on the provided context.\n\n"
    "INSTRUCTIONS:\n"
    "1. Answer the user's question using ONLY the information provided in the context below\n"
    "2. If the context doesn't contain enough information to fully answer the question, "
    "say so clearly\n"
    "3. When referencing information, use citation markers like [Source 1], [Source 2], etc. "
    "that correspond to the sources provided\n"
    "4. Be conversational and helpful, but stick to the facts from the documents\n"
    "5. If asked about something not in the documents, politely explain that you can only "
    "answer based on the uploaded event materials\n\n"
    "CONTEXT FROM EVENT DOCUMENTS:\n"
    "{context}"
)

_USER_PROMPT_TEMPLATE = (
    "Question: {question}\n\n"
    "Please provide a helpful answer based on the event documents provided above."
)


def make_excerpt(text: str, limit: int = 200) -> str:
    """First *limit* characters of *text*, with ``...`` appended when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class AnswerSynthesizer:
    """LLM call plus citation mapping for a non-empty retrieval result.

    Parameters
    ----------
    llm:
        Completion backend.
    event_store:
        Source of document display names.
    cache:
        Optional memo for display names, keyed ``docname:{event}:{doc}``.
    temperature, max_tokens:
        Sampling settings; low temperature keeps answers factual.
    excerpt_chars:
        Citation excerpt length before ``...``.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        event_store: IEventStore,
        cache: ICacheProvider | None = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        excerpt_chars: int = 200,
    ) -> None:
        self._llm = llm
        self._event_store = event_store
        self._cache = cache
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._excerpt_chars = excerpt_chars

    async def synthesize(self, event_id: str, question: str, retrieval: RetrievalResult) -> Answer:
        """Generate the answer text and its citations.

        Raises
        ------
        ExternalServiceError
            If the LLM fails or returns nothing.
        """
        system_prompt = _SYSTEM_PROMPT_TEMPLATE.format(context=retrieval.context)
        user_prompt = _USER_PROMPT_TEMPLATE.format(question=question)

        text = await self._llm.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        citations = await self.build_citations(event_id, retrieval.chunks)

        logger.info(
            "answer_synthesized",
            event_id=event_id,
            provider=self._llm.get_provider_name(),
            answer_chars=len(text),
            citations=len(citations),
        )
        return Answer(text=text.strip(), citations=citations)

    async def build_citations(self, event_id: str, chunks: list[RetrievedChunk]) -> list[Citation]:
        citations: list[Citation] = []
        for chunk in chunks:
            document_id = document_id_from_path(chunk.storage_path) or "unknown"
            name = await self._document_name(event_id, document_id, chunk.source_number)
            citations.append(
                Citation(
                    document_id=document_id,
                    document_name=name,
                    chunk_index=chunk.chunk_index,
                    excerpt=make_excerpt(chunk.text, self._excerpt_chars),
                    storage_path=chunk.storage_path,
                )
            )
        return citations

    async def _document_name(self, event_id: str, document_id: str, position: int) -> str:
        fallback = f"Document {position}"
        cache_key = f"docname:{event_id}:{document_id}"

        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached:
                return cached

        try:
            document = await self._event_store.get_document(event_id, document_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "document_name_lookup_failed",
                event_id=event_id,
                document_id=document_id,
                error=str(exc),
            )
            return fallback

        if document is None or not document.name:
            return fallback
        if self._cache is not None:
            await self._cache.set(cache_key, document.name)
        return document.name
