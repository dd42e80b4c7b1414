"""Public interface definitions for every external store and engine.

Services depend only on the abstract base classes in this package.
Concrete adapters live in ``src/providers/`` and are wired once in
``src/main.py::_build_all``; unit tests inject ``MagicMock(spec=...)``
doubles instead.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementation (in src/providers/)
    ─────────────────────────────────────────────────────────────────
    IEmbeddingProvider     →  OpenAIEmbeddingProvider
    IVectorStoreProvider   →  ChromaDBProvider
    ILLMProvider           →  OpenAILLMProvider, AnthropicLLMProvider
    IOCRProvider           →  TesseractOCRProvider
    IEventStore            →  SQLiteEventStore
    IObjectStorage         →  LocalObjectStorage
    ICacheProvider         →  MemoryCacheProvider
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.event_store import IEventStore
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.object_storage import IObjectStorage
from src.interfaces.ocr_provider import IOCRProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICacheProvider",
    "IEmbeddingProvider",
    "IEventStore",
    "ILLMProvider",
    "IOCRProvider",
    "IObjectStorage",
    "IVectorStoreProvider",
]
