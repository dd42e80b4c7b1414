"""Unit tests for LocalObjectStorage."""

from __future__ import annotations

import pytest

from src.utils.errors import InvalidArgument, NotFound


class TestReadWrite:
    @pytest.mark.asyncio()
    async def test_round_trip(self, object_storage) -> None:
        await object_storage.write("events/ev1/docs/a.pdf", b"%PDF-1.7", "application/pdf")
        assert await object_storage.read("events/ev1/docs/a.pdf") == b"%PDF-1.7"
        assert await object_storage.content_type("events/ev1/docs/a.pdf") == "application/pdf"

    @pytest.mark.asyncio()
    async def test_missing_object(self, object_storage) -> None:
        with pytest.raises(NotFound):
            await object_storage.read("events/ev1/docs/none.pdf")
        assert await object_storage.content_type("events/ev1/docs/none.pdf") is None

    @pytest.mark.asyncio()
    async def test_type_guessed_without_declaration(self, object_storage) -> None:
        await object_storage.write("events/ev1/docs/map.png", b"png")
        assert await object_storage.content_type("events/ev1/docs/map.png") == "image/png"

    @pytest.mark.asyncio()
    async def test_rewrite_without_type_drops_declaration(self, object_storage) -> None:
        await object_storage.write("events/ev1/docs/file", b"x", "application/pdf")
        await object_storage.write("events/ev1/docs/file", b"y")
        assert await object_storage.content_type("events/ev1/docs/file") is None

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("path", ["", "/etc/passwd", "events/../secrets"])
    async def test_invalid_paths(self, object_storage, path: str) -> None:
        with pytest.raises(InvalidArgument):
            await object_storage.write(path, b"x")


class TestDeleteAndList:
    @pytest.mark.asyncio()
    async def test_delete_reports_existence(self, object_storage) -> None:
        await object_storage.write("events/ev1/a.txt", b"x", "text/plain")
        assert await object_storage.delete("events/ev1/a.txt") is True
        assert await object_storage.delete("events/ev1/a.txt") is False

    @pytest.mark.asyncio()
    async def test_list_prefix_excludes_other_events_and_sidecars(self, object_storage) -> None:
        await object_storage.write("events/ev1/docs/b.pdf", b"x", "application/pdf")
        await object_storage.write("events/ev1/misc/a.png", b"x", "image/png")
        await object_storage.write("events/ev10/docs/c.pdf", b"x")
        await object_storage.write("stories/s1.jpg", b"x")

        assert await object_storage.list_prefix("events/ev1/") == [
            "events/ev1/docs/b.pdf",
            "events/ev1/misc/a.png",
        ]

    @pytest.mark.asyncio()
    async def test_list_empty_root(self, object_storage) -> None:
        assert await object_storage.list_prefix("events/") == []
