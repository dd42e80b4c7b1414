"""Unit tests for QAService: caller checks, no-match short circuit, synthesis."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.event_store import IEventStore
from src.interfaces.llm_provider import ILLMProvider
from src.models.event import Participant
from src.services.answer_synthesizer import AnswerSynthesizer
from src.services.qa_service import NO_MATCH_ANSWER, QAService
from src.services.retrieval_service import RetrievalService
from src.utils.errors import (
    AuthenticationRequired,
    InvalidArgument,
    OperationTimeoutError,
    PermissionDenied,
)
from tests.conftest import MockEmbeddingProvider, MockVectorStore, _hash_to_vector
from src.models.rag import VectorRecord


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture()
def mock_llm() -> MagicMock:
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="The keynote starts at 9am [Source 1].")
    llm.get_provider_name.return_value = "mock-llm"
    return llm


@pytest.fixture()
def store() -> MagicMock:
    event_store = MagicMock(spec=IEventStore)
    event_store.get_participant = AsyncMock(
        return_value=Participant(event_id="ev1", user_id="u1")
    )
    event_store.get_document = AsyncMock(return_value=None)
    return event_store


@pytest.fixture()
def qa(
    store: MagicMock,
    mock_llm: MagicMock,
    mock_embedding: MockEmbeddingProvider,
    mock_vector_store: MockVectorStore,
) -> QAService:
    retrieval = RetrievalService(mock_embedding, mock_vector_store)
    synthesizer = AnswerSynthesizer(mock_llm, store)
    return QAService(store, retrieval, synthesizer)


async def _index_chunk(vector_store: MockVectorStore, text: str, embed_as: str) -> None:
    """Store *text* under the embedding of *embed_as* so a query for it scores 1.0."""
    await vector_store.upsert(
        "ev1",
        [
            VectorRecord(
                id="events/ev1/docs/agenda.pdf#0",
                values=_hash_to_vector(embed_as),
                metadata={
                    "text": text,
                    "storagePath": "events/ev1/docs/agenda.pdf",
                    "chunkIndex": 0,
                },
            )
        ],
    )


# ── Caller checks ─────────────────────────────────────────


class TestAuthorisation:
    @pytest.mark.asyncio()
    async def test_unauthenticated_rejected_first(self, qa: QAService) -> None:
        with pytest.raises(AuthenticationRequired):
            await qa.answer_question(None, "", "", "")

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("event_id", "user_id", "question"),
        [("", "u1", "q"), ("ev1", "", "q"), ("ev1", "u1", ""), ("ev1", "u1", "   ")],
    )
    async def test_missing_fields(
        self, qa: QAService, event_id: str, user_id: str, question: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await qa.answer_question("u1", event_id, user_id, question)

    @pytest.mark.asyncio()
    async def test_caller_must_match_user(self, qa: QAService, store: MagicMock) -> None:
        with pytest.raises(PermissionDenied, match="mismatch"):
            await qa.answer_question("u2", "ev1", "u1", "When?")
        store.get_participant.assert_not_called()

    @pytest.mark.asyncio()
    async def test_non_participant_rejected(
        self, qa: QAService, store: MagicMock, mock_embedding: MockEmbeddingProvider
    ) -> None:
        store.get_participant.return_value = None
        with pytest.raises(PermissionDenied, match="not a participant"):
            await qa.answer_question("u1", "ev1", "u1", "When?")
        assert mock_embedding.calls == []


# ── Answering ─────────────────────────────────────────────


class TestAnswering:
    @pytest.mark.asyncio()
    async def test_no_relevant_chunks_skips_llm(
        self, qa: QAService, mock_llm: MagicMock
    ) -> None:
        answer = await qa.answer_question("u1", "ev1", "u1", "Is there parking?")

        assert answer.text == NO_MATCH_ANSWER
        assert answer.citations == []
        mock_llm.complete.assert_not_called()

    @pytest.mark.asyncio()
    async def test_relevant_chunk_produces_cited_answer(
        self, qa: QAService, mock_llm: MagicMock, mock_vector_store: MockVectorStore
    ) -> None:
        question = "When does the keynote start?"
        await _index_chunk(mock_vector_store, "Keynote: 9am, main hall.", embed_as=question)

        answer = await qa.answer_question("u1", "ev1", "u1", f"  {question}  ")

        assert answer.text == "The keynote starts at 9am [Source 1]."
        assert len(answer.citations) == 1
        citation = answer.citations[0]
        assert citation.document_id == "agenda.pdf"
        assert citation.document_name == "Document 1"
        assert citation.excerpt == "Keynote: 9am, main hall."
        mock_llm.complete.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_other_events_are_not_searched(
        self, qa: QAService, mock_llm: MagicMock, mock_vector_store: MockVectorStore
    ) -> None:
        question = "When does the keynote start?"
        await _index_chunk(mock_vector_store, "Keynote: 9am.", embed_as=question)
        mock_vector_store.namespaces["ev2"] = mock_vector_store.namespaces.pop("ev1")

        answer = await qa.answer_question("u1", "ev1", "u1", question)

        assert answer.text == NO_MATCH_ANSWER
        mock_llm.complete.assert_not_called()

    @pytest.mark.asyncio()
    async def test_slow_answer_times_out(
        self,
        store: MagicMock,
        mock_llm: MagicMock,
        mock_embedding: MockEmbeddingProvider,
        mock_vector_store: MockVectorStore,
    ) -> None:
        import asyncio

        async def _slow(*args, **kwargs):
            await asyncio.sleep(1)
            return "late"

        question = "When does the keynote start?"
        await _index_chunk(mock_vector_store, "Keynote", embed_as=question)
        mock_llm.complete.side_effect = _slow
        service = QAService(
            store,
            RetrievalService(mock_embedding, mock_vector_store),
            AnswerSynthesizer(mock_llm, store),
            timeout_seconds=0.01,
        )

        with pytest.raises(OperationTimeoutError):
            await service.answer_question("u1", "ev1", "u1", question)
