"""Abstract base class for cache service providers.

Used to memoise document display-name lookups while building citations,
so answering several questions about the same event doesn't re-read the
same document records.  Implementations may be in-process or networked.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async to allow for network-backed stores without
    blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* using the provider's TTL."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Drop every key starting with *prefix*; returns how many were removed.

        Teardown uses this to forget an event's cached entries.
        """
