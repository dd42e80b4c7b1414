"""Object storage implementations."""

from src.providers.storage.local_storage import LocalObjectStorage

__all__ = ["LocalObjectStorage"]
