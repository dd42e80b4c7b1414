"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Each namespace (one per event) maps to its own collection using cosine
distance, so deleting an event's vectors is a single ``delete_collection``.

Collection names are derived from a hash of the namespace because ChromaDB
restricts names to 3-63 characters of ``[a-zA-Z0-9._-]``; the raw
namespace is kept in collection metadata for inspection.  The client is
synchronous, so every call runs in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from typing import Any

# ANONYMIZED_TELEMETRY must be set before chromadb is imported for some
# versions to honour it; Settings(anonymized_telemetry=False) below covers
# the rest.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from src.interfaces.vector_store_provider import MAX_BATCH_SIZE, IVectorStoreProvider
from src.models.rag import VectorMatch, VectorRecord
from src.utils.concurrency import batched
from src.utils.errors import ExternalServiceError

logger = structlog.get_logger(logger_name=__name__)

_COLLECTION_PREFIX = "ns-"
_LIST_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    All vectors are computed by the injected embedding provider and passed
    explicitly; this stops ChromaDB from loading its default ONNX model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "eventkb uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


def collection_name_for(namespace: str) -> str:
    """Map an arbitrary namespace string onto a valid ChromaDB collection name."""
    digest = hashlib.sha256(namespace.encode("utf-8")).hexdigest()[:32]
    return f"{_COLLECTION_PREFIX}{digest}"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector index backed by ChromaDB with local persistence.

    Scores are reported as cosine similarity, ``1 - distance`` clamped to
    ``[0, 1]``, so the retrieval threshold is backend independent.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )

    # ------------------------------------------------------------------
    # Collection helpers
    # ------------------------------------------------------------------

    def _collection_exists(self, name: str) -> bool:
        # list_collections returns names on chromadb>=0.6 and Collection
        # objects on older releases.
        for entry in self._client.list_collections():
            if getattr(entry, "name", entry) == name:
                return True
        return False

    def _get_or_create(self, namespace: str) -> Any:
        name = collection_name_for(namespace)
        metadata = {"hnsw:space": "cosine", "namespace": namespace}
        try:
            return self._client.get_or_create_collection(
                name=name,
                metadata=metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            return self._client.get_or_create_collection(name=name, metadata=metadata)

    def _get_existing(self, namespace: str) -> Any | None:
        name = collection_name_for(namespace)
        if not self._collection_exists(name):
            return None
        return self._get_or_create(namespace)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(
        self,
        namespace: str,
        records: list[VectorRecord],
        batch_size: int = MAX_BATCH_SIZE,
    ) -> int:
        """Upsert records in independent batches of at most 100."""
        if not records:
            return 0
        batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))

        written = 0

        def _upsert() -> None:
            nonlocal written
            collection = self._get_or_create(namespace)
            for batch in batched(records, batch_size):
                collection.upsert(
                    ids=[r.id for r in batch],
                    embeddings=[r.values for r in batch],
                    metadatas=[r.metadata for r in batch],
                )
                written += len(batch)

        try:
            await asyncio.to_thread(_upsert)
        except Exception as exc:
            raise ExternalServiceError(
                message=f"ChromaDB upsert failed after {written} record(s): {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_upsert",
            namespace=namespace,
            count=written,
            batches=(len(records) + batch_size - 1) // batch_size,
        )
        return written

    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Nearest-neighbour search within one namespace."""

        def _query() -> dict[str, Any] | None:
            collection = self._get_existing(namespace)
            if collection is None:
                return None
            count = collection.count()
            if count == 0 or top_k <= 0:
                return None

            include = ["distances", "metadatas"] if include_metadata else ["distances"]
            return collection.query(
                query_embeddings=[vector],
                n_results=min(top_k, count),
                include=include,
            )

        try:
            results = await asyncio.to_thread(_query)
        except Exception as exc:
            raise ExternalServiceError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if results is None:
            return []
        ids = results["ids"][0] if results.get("ids") else []
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)
        metadatas = (
            results["metadatas"][0]
            if include_metadata and results.get("metadatas")
            else [{}] * len(ids)
        )

        matches = [
            VectorMatch(
                id=vid,
                score=max(0.0, min(1.0, 1.0 - distance)),
                metadata=dict(meta or {}),
            )
            for vid, distance, meta in zip(ids, distances, metadatas, strict=True)
        ]
        matches.sort(key=lambda m: m.score, reverse=True)

        logger.debug(
            "chromadb_query",
            namespace=namespace,
            results_count=len(matches),
            top_score=matches[0].score if matches else 0.0,
        )
        return matches

    async def delete_namespace(self, namespace: str) -> None:
        """Drop the namespace's collection; a missing collection is a no-op."""
        name = collection_name_for(namespace)

        def _delete() -> bool:
            if not self._collection_exists(name):
                return False
            self._client.delete_collection(name=name)
            return True

        try:
            deleted = await asyncio.to_thread(_delete)
        except Exception as exc:
            raise ExternalServiceError(
                message=f"ChromaDB delete_namespace failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not deleted:
            logger.info("chromadb_namespace_absent", namespace=namespace)
            return
        logger.info("chromadb_namespace_deleted", namespace=namespace)

    async def list_records(self, namespace: str) -> list[dict[str, Any]]:
        """Page through every vector id and metadata in the namespace."""

        def _list() -> list[dict[str, Any]]:
            collection = self._get_existing(namespace)
            if collection is None:
                return []

            records: list[dict[str, Any]] = []
            offset = 0
            while True:
                page = collection.get(
                    include=["metadatas"], limit=_LIST_PAGE_SIZE, offset=offset
                )
                ids = page.get("ids") or []
                if not ids:
                    break
                metadatas = page.get("metadatas") or [{}] * len(ids)
                records.extend(
                    {"id": vid, "metadata": dict(meta or {})}
                    for vid, meta in zip(ids, metadatas, strict=True)
                )
                if len(ids) < _LIST_PAGE_SIZE:
                    break
                offset += _LIST_PAGE_SIZE
            return records

        try:
            return await asyncio.to_thread(_list)
        except Exception as exc:
            raise ExternalServiceError(
                message=f"ChromaDB list_records failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_records(self, namespace: str, ids: list[str]) -> int:
        if not ids:
            return 0

        def _delete() -> bool:
            collection = self._get_existing(namespace)
            if collection is None:
                return False
            for batch in batched(ids, MAX_BATCH_SIZE):
                collection.delete(ids=list(batch))
            return True

        try:
            found = await asyncio.to_thread(_delete)
        except Exception as exc:
            raise ExternalServiceError(
                message=f"ChromaDB delete_records failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not found:
            return 0
        logger.info("chromadb_delete_records", namespace=namespace, count=len(ids))
        return len(ids)

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:  # noqa: BLE001
            return False
