"""Abstract base class for object storage.

Files are addressed by slash-separated storage paths such as
``events/{eventId}/docs/agenda.pdf``.  Every event's files share the
``events/{eventId}/`` prefix, which the teardown saga sweeps last.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: LocalObjectStorage (src/providers/storage/)
class IObjectStorage(ABC):
    """Contract for blob storage keyed by storage path."""

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Return the object's bytes.

        Raises
        ------
        src.utils.errors.NotFound
            If no object exists at *path*.
        """

    @abstractmethod
    async def write(self, path: str, data: bytes, content_type: str | None = None) -> None:
        """Create or overwrite the object at *path*."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete the object; ``False`` when it was already absent."""

    @abstractmethod
    async def list_prefix(self, prefix: str) -> list[str]:
        """Return every object path beginning with *prefix*, sorted."""

    @abstractmethod
    async def content_type(self, path: str) -> str | None:
        """Return the declared content type, or ``None`` if unknown."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local_storage"``."""
