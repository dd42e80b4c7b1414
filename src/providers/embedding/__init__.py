"""Embedding provider implementations.

    OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) via the
    OpenAI API or any OpenAI-compatible endpoint.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
