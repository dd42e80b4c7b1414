"""Abstract base class for namespace-scoped vector index providers.

Every event's vectors live in their own namespace (the ``event_id``), so
tenant isolation is a property of the index, not of query filters.  Vector
IDs are deterministic (``{storagePath}#{chunkIndex}``), which makes every
upsert an idempotent overwrite.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.rag import VectorMatch, VectorRecord

# Maximum records per upsert/delete call.
MAX_BATCH_SIZE = 100


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the vector index used by ingestion, retrieval and teardown."""

    @abstractmethod
    async def upsert(
        self,
        namespace: str,
        records: list[VectorRecord],
        batch_size: int = MAX_BATCH_SIZE,
    ) -> int:
        """Insert or overwrite *records* in *namespace*.

        Records are written in batches of at most *batch_size* (capped at
        :data:`MAX_BATCH_SIZE`).  Batches are independent: a failure in
        batch *k* leaves batches ``< k`` written.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        src.utils.errors.ExternalServiceError
            If a batch write fails.
        """

    @abstractmethod
    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return up to *top_k* nearest matches ordered by score descending.

        An unknown namespace yields an empty list.
        """

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> None:
        """Remove every vector in *namespace*.  A missing namespace is a no-op."""

    @abstractmethod
    async def list_records(self, namespace: str) -> list[dict[str, Any]]:
        """Return ``{"id": ..., "metadata": {...}}`` for every vector in *namespace*.

        Used by orphan reconciliation; not on any request hot path.
        """

    @abstractmethod
    async def delete_records(self, namespace: str, ids: list[str]) -> int:
        """Delete the given vector ids from *namespace*; returns how many were requested."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing store is reachable."""
