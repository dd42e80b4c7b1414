"""Event Q&A facade: authorisation, retrieval, synthesis.

Flow for one question:

  1. AUTHORISE  -- the authenticated caller must be the ``user_id`` in the
                   request and a participant of the event.
  2. RETRIEVE   -- top-5 matches from the event's namespace, threshold 0.5.
  3. SHORT-CIRCUIT -- nothing retained: return a fixed apology with no
                   citations and no LLM call.
  4. SYNTHESISE -- grounded LLM answer plus one citation per source.

The whole request runs under a wall-clock budget.
"""

from __future__ import annotations

import structlog

from src.interfaces.event_store import IEventStore
from src.models.rag import Answer
from src.services.answer_synthesizer import AnswerSynthesizer
from src.services.retrieval_service import RetrievalService
from src.utils.concurrency import run_with_timeout
from src.utils.errors import AuthenticationRequired, InvalidArgument, PermissionDenied
from src.utils.logging import bind_event_context, get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NO_MATCH_ANSWER = (
    "I couldn't find any relevant information in the uploaded documents to answer your "
    "question. You might want to ask the event organizers directly or check if the relevant "
    "documents have been uploaded."
)


class QAService:
    """Answers participant questions from their event's documents.

    Parameters
    ----------
    event_store:
        Used for the participant check.
    retrieval:
        Question -> labelled context.
    synthesizer:
        Context -> answer with citations.
    timeout_seconds:
        Budget for retrieval plus synthesis.
    """

    def __init__(
        self,
        event_store: IEventStore,
        retrieval: RetrievalService,
        synthesizer: AnswerSynthesizer,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._event_store = event_store
        self._retrieval = retrieval
        self._synthesizer = synthesizer
        self._timeout_seconds = timeout_seconds

    async def answer_question(
        self,
        caller_id: str | None,
        event_id: str,
        user_id: str,
        question: str,
    ) -> Answer:
        """Authorise the caller and answer *question*.

        Raises
        ------
        AuthenticationRequired
            No caller identity.
        InvalidArgument
            Missing event id, user id, or question.
        PermissionDenied
            Caller differs from *user_id*, or is not a participant.
        ExternalServiceError
            Embedding, vector index, or LLM failure.
        """
        if not caller_id:
            raise AuthenticationRequired("User must be authenticated")
        question = (question or "").strip()
        if not event_id or not user_id or not question:
            raise InvalidArgument("Missing required parameters: eventId, userId, question")
        if caller_id != user_id:
            raise PermissionDenied("User ID mismatch")

        participant = await self._event_store.get_participant(event_id, user_id)
        if participant is None:
            raise PermissionDenied("User is not a participant in this event")

        bind_event_context(event_id, user_id=user_id)
        return await run_with_timeout(
            self._answer(event_id, question),
            timeout=self._timeout_seconds,
            operation="answer_question",
        )

    async def _answer(self, event_id: str, question: str) -> Answer:
        retrieval = await self._retrieval.retrieve(event_id, question)
        if retrieval.is_empty:
            logger.info("qa_no_relevant_chunks", event_id=event_id)
            return Answer(text=NO_MATCH_ANSWER, citations=[])
        return await self._synthesizer.synthesize(event_id, question, retrieval)
