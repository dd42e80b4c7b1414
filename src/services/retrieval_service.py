"""Similarity retrieval over one event's knowledge base.

Embeds the question, queries the event's namespace for the top *k*
matches, drops everything below the similarity threshold, and labels the
survivors ``[Source 1]..[Source N]`` in rank order.  The labelled context
is what the answer synthesizer puts in front of the LLM, and the same
numbering is used for citations.
"""

from __future__ import annotations

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import RetrievalResult, RetrievedChunk, VectorMatch
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)


def filter_by_threshold(matches: list[VectorMatch], threshold: float) -> list[VectorMatch]:
    """Keep matches scoring at least *threshold*, preserving order."""
    return [m for m in matches if m.score >= threshold]


def format_context(chunks: list[RetrievedChunk]) -> str:
    """Render ``[Source i]`` sections joined by blank lines."""
    return "\n".join(f"[Source {c.source_number}]\n{c.text}\n" for c in chunks)


class RetrievalService:
    """Question -> labelled context for one event.

    Parameters
    ----------
    embedding_provider:
        Embeds the question into the same space as the indexed chunks.
    vector_store:
        Queried with namespace = event id.
    top_k:
        Matches requested from the index.
    similarity_threshold:
        Minimum cosine similarity for a match to be used at all.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        top_k: int = 5,
        similarity_threshold: float = 0.5,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._top_k = top_k
        self._threshold = similarity_threshold

    @property
    def top_k(self) -> int:
        return self._top_k

    @property
    def similarity_threshold(self) -> float:
        return self._threshold

    async def retrieve(self, event_id: str, question: str) -> RetrievalResult:
        """Return the retained chunks and their assembled context.

        An empty result means nothing in the event's documents was similar
        enough; the caller answers with a fixed fallback instead of the LLM.
        """
        query_vector = await self._embedding_provider.embed_single(question)
        matches = await self._vector_store.query(
            event_id, query_vector, top_k=self._top_k, include_metadata=True
        )
        retained = filter_by_threshold(matches, self._threshold)

        logger.info(
            "retrieval_complete",
            event_id=event_id,
            matches=len(matches),
            retained=len(retained),
            threshold=self._threshold,
            top_score=matches[0].score if matches else None,
        )

        chunks = [
            RetrievedChunk(
                source_number=rank,
                text=str(match.metadata.get("text", "")),
                storage_path=str(match.metadata.get("storagePath", "")),
                chunk_index=int(match.metadata.get("chunkIndex", 0)),
                score=match.score,
            )
            for rank, match in enumerate(retained, start=1)
        ]
        return RetrievalResult(chunks=chunks, context=format_context(chunks))
