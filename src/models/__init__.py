"""eventkb domain models -- re-exports all public model classes.

Other parts of the codebase can import directly from ``src.models``
instead of the individual submodules.

The models are organized across four submodules by domain concern:
    - event.py      -- Event-owned records (event, participant, user,
                      document, asset, story)
    - ingestion.py  -- Ingestion stages, extracted content, run results
    - rag.py        -- Vector records, retrieval results, citations, answers
    - teardown.py   -- Teardown reports and sweep summaries

The ``__all__`` list at the bottom controls what ``from src.models import *``
exports. If you add a new model class, remember to add it here too.
"""

from __future__ import annotations

from src.models.event import (
    Asset,
    Document,
    Event,
    EventStatus,
    Participant,
    Story,
    StoryKind,
    User,
)
from src.models.ingestion import ExtractedContent, IngestionResult, IngestionStage
from src.models.rag import (
    Answer,
    Citation,
    RetrievalResult,
    RetrievedChunk,
    VectorMatch,
    VectorRecord,
    document_id_from_path,
    make_vector_id,
)
from src.models.teardown import StepError, SweepSummary, TeardownReport

__all__ = [
    "Answer",
    "Asset",
    "Citation",
    "Document",
    "Event",
    "EventStatus",
    "ExtractedContent",
    "IngestionResult",
    "IngestionStage",
    "Participant",
    "RetrievalResult",
    "RetrievedChunk",
    "StepError",
    "Story",
    "StoryKind",
    "SweepSummary",
    "TeardownReport",
    "User",
    "VectorMatch",
    "VectorRecord",
    "document_id_from_path",
    "make_vector_id",
]
