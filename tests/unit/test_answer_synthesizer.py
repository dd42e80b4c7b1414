"""Unit tests for AnswerSynthesizer prompt assembly and citation mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.event_store import IEventStore
from src.interfaces.llm_provider import ILLMProvider
from src.models.event import Document
from src.models.rag import RetrievalResult, RetrievedChunk
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.services.answer_synthesizer import AnswerSynthesizer, make_excerpt
from src.utils.errors import ExternalServiceError
from src.services.retrieval_service import format_context


def _chunk(n: int, text: str = "Lunch is served at noon.", doc: str = "agenda.pdf") -> RetrievedChunk:
    return RetrievedChunk(
        source_number=n,
        text=text,
        storage_path=f"events/ev1/docs/{doc}",
        chunk_index=n - 1,
        score=0.9,
    )


def _retrieval(*chunks: RetrievedChunk) -> RetrievalResult:
    return RetrievalResult(chunks=list(chunks), context=format_context(list(chunks)))


@pytest.fixture()
def llm() -> MagicMock:
    provider = MagicMock(spec=ILLMProvider)
    provider.complete = AsyncMock(return_value="  Lunch is at noon [Source 1].  ")
    provider.get_provider_name.return_value = "mock-llm"
    return provider


@pytest.fixture()
def store() -> MagicMock:
    event_store = MagicMock(spec=IEventStore)
    event_store.get_document = AsyncMock(
        return_value=Document(
            document_id="agenda.pdf",
            event_id="ev1",
            name="Event Agenda",
            storage_path="events/ev1/docs/agenda.pdf",
        )
    )
    return event_store


class TestMakeExcerpt:
    def test_short_text_unchanged(self) -> None:
        assert make_excerpt("short") == "short"

    def test_exactly_200_chars_unchanged(self) -> None:
        assert make_excerpt("a" * 200) == "a" * 200

    def test_long_text_truncated_with_ellipsis(self) -> None:
        excerpt = make_excerpt("b" * 450)
        assert excerpt == "b" * 200 + "..."
        assert len(excerpt) == 203


class TestSynthesize:
    @pytest.mark.asyncio()
    async def test_prompt_carries_context_and_sampling_settings(
        self, llm: MagicMock, store: MagicMock
    ) -> None:
        synthesizer = AnswerSynthesizer(llm, store)
        await synthesizer.synthesize("ev1", "When is lunch?", _retrieval(_chunk(1)))

        kwargs = llm.complete.await_args.kwargs
        assert "[Source 1]\nLunch is served at noon." in kwargs["system_prompt"]
        assert "ONLY the information provided" in kwargs["system_prompt"]
        assert kwargs["user_prompt"].startswith("Question: When is lunch?")
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 1000

    @pytest.mark.asyncio()
    async def test_answer_text_is_stripped(self, llm: MagicMock, store: MagicMock) -> None:
        answer = await AnswerSynthesizer(llm, store).synthesize(
            "ev1", "When is lunch?", _retrieval(_chunk(1))
        )
        assert answer.text == "Lunch is at noon [Source 1]."

    @pytest.mark.asyncio()
    async def test_one_citation_per_chunk(self, llm: MagicMock, store: MagicMock) -> None:
        long_text = "x" * 500
        answer = await AnswerSynthesizer(llm, store).synthesize(
            "ev1", "q", _retrieval(_chunk(1), _chunk(2, text=long_text))
        )

        assert len(answer.citations) == 2
        first, second = answer.citations
        assert first.document_id == "agenda.pdf"
        assert first.document_name == "Event Agenda"
        assert first.chunk_index == 0
        assert first.storage_path == "events/ev1/docs/agenda.pdf"
        assert second.excerpt == "x" * 200 + "..."

    @pytest.mark.asyncio()
    async def test_llm_failure_propagates(self, llm: MagicMock, store: MagicMock) -> None:
        llm.complete.side_effect = ExternalServiceError("quota", provider_name="openai")
        with pytest.raises(ExternalServiceError):
            await AnswerSynthesizer(llm, store).synthesize("ev1", "q", _retrieval(_chunk(1)))


class TestDocumentNames:
    @pytest.mark.asyncio()
    async def test_missing_record_falls_back_to_position(
        self, llm: MagicMock, store: MagicMock
    ) -> None:
        store.get_document.return_value = None
        citations = await AnswerSynthesizer(llm, store).build_citations(
            "ev1", [_chunk(1), _chunk(2, doc="map.png")]
        )
        assert [c.document_name for c in citations] == ["Document 1", "Document 2"]

    @pytest.mark.asyncio()
    async def test_lookup_failure_falls_back(self, llm: MagicMock, store: MagicMock) -> None:
        store.get_document.side_effect = RuntimeError("db locked")
        citations = await AnswerSynthesizer(llm, store).build_citations("ev1", [_chunk(3)])
        assert citations[0].document_name == "Document 3"

    @pytest.mark.asyncio()
    async def test_blank_name_falls_back(self, llm: MagicMock, store: MagicMock) -> None:
        store.get_document.return_value = Document(
            document_id="agenda.pdf", event_id="ev1", name="", storage_path="p"
        )
        citations = await AnswerSynthesizer(llm, store).build_citations("ev1", [_chunk(1)])
        assert citations[0].document_name == "Document 1"

    @pytest.mark.asyncio()
    async def test_names_are_cached_per_event(self, llm: MagicMock, store: MagicMock) -> None:
        cache = MemoryCacheProvider()
        synthesizer = AnswerSynthesizer(llm, store, cache=cache)

        await synthesizer.build_citations("ev1", [_chunk(1)])
        await synthesizer.build_citations("ev1", [_chunk(1)])

        store.get_document.assert_awaited_once_with("ev1", "agenda.pdf")
        assert await cache.get("docname:ev1:agenda.pdf") == "Event Agenda"
