"""Abstract base class for embedding service providers.

Defines the contract for turning chunk text, questions, and (on the image
fallback path) raw image bytes into fixed-dimension vectors.  The default
implementation wraps OpenAI ``text-embedding-3-small``; any backend with a
constant output dimension can stand in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (src/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and retrieval.

    Providers hold no cross-call state: every call is independent and may
    run concurrently with others.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.ExternalServiceError
            On quota, network, or malformed-input failures.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    async def embed_binary(self, data: bytes) -> list[float]:
        """Embed a raw binary blob (image bytes with no recoverable text).

        Implementations encode the blob into a form the model accepts and
        embed that; the resulting vector lives in the same space as text
        vectors so it can sit in the same namespace.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the constant dimensionality of produced vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
