"""Vector store provider implementations.

ChromaDB is the sole implementation: one collection per event namespace,
persisted at CHROMADB_PERSIST_DIR (default: ./data/chromadb).
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
