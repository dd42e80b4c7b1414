"""Filesystem-backed object storage.

Objects live under ``{root}/objects/{storage_path}``.  A declared content
type, when one is given at write time, is kept in a sidecar under
``{root}/meta/`` so prefix listings only ever see real objects.  Without a
sidecar the type is guessed from the file extension.

Blocking file I/O runs in worker threads via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path, PurePosixPath

import structlog

from src.interfaces.object_storage import IObjectStorage
from src.utils.errors import InvalidArgument, NotFound

logger = structlog.get_logger(logger_name=__name__)

_TYPE_SUFFIX = ".content-type"


class LocalObjectStorage(IObjectStorage):
    """Object storage rooted at a local directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._objects = self._root / "objects"
        self._meta = self._root / "meta"

    def _resolve(self, path: str) -> tuple[Path, Path]:
        pure = PurePosixPath(path)
        if not path or pure.is_absolute() or ".." in pure.parts:
            raise InvalidArgument(f"Invalid storage path: {path!r}")
        return self._objects.joinpath(*pure.parts), self._meta.joinpath(*pure.parts)

    async def read(self, path: str) -> bytes:
        object_path, _ = self._resolve(path)
        try:
            return await asyncio.to_thread(object_path.read_bytes)
        except FileNotFoundError as exc:
            raise NotFound(f"No object at {path}", provider_name=self.get_provider_name()) from exc

    async def write(self, path: str, data: bytes, content_type: str | None = None) -> None:
        object_path, meta_path = self._resolve(path)

        def _write() -> None:
            object_path.parent.mkdir(parents=True, exist_ok=True)
            object_path.write_bytes(data)
            type_path = meta_path.with_name(meta_path.name + _TYPE_SUFFIX)
            if content_type:
                type_path.parent.mkdir(parents=True, exist_ok=True)
                type_path.write_text(content_type)
            else:
                type_path.unlink(missing_ok=True)

        await asyncio.to_thread(_write)

    async def delete(self, path: str) -> bool:
        object_path, meta_path = self._resolve(path)

        def _delete() -> bool:
            meta_path.with_name(meta_path.name + _TYPE_SUFFIX).unlink(missing_ok=True)
            try:
                object_path.unlink()
            except FileNotFoundError:
                return False
            return True

        deleted = await asyncio.to_thread(_delete)
        logger.debug("storage_delete", path=path, existed=deleted)
        return deleted

    async def list_prefix(self, prefix: str) -> list[str]:
        def _walk() -> list[str]:
            if not self._objects.exists():
                return []
            paths = (
                p.relative_to(self._objects).as_posix()
                for p in self._objects.rglob("*")
                if p.is_file()
            )
            return sorted(p for p in paths if p.startswith(prefix))

        return await asyncio.to_thread(_walk)

    async def content_type(self, path: str) -> str | None:
        object_path, meta_path = self._resolve(path)
        type_path = meta_path.with_name(meta_path.name + _TYPE_SUFFIX)

        def _lookup() -> str | None:
            if type_path.exists():
                return type_path.read_text().strip() or None
            if not object_path.exists():
                return None
            guessed, _ = mimetypes.guess_type(object_path.name)
            return guessed

        return await asyncio.to_thread(_lookup)

    def get_provider_name(self) -> str:
        return "local_storage"
