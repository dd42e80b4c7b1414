"""Unit tests for ContentExtractor (PDF text, image OCR, raw-image fallback)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.ocr_provider import IOCRProvider
from src.services.ingestion.content_extractor import ContentExtractor, is_image, is_pdf
from src.utils.errors import EmptyContentError, ExtractionError, InvalidArgument
from tests.conftest import make_pdf_bytes


@pytest.fixture()
def mock_ocr() -> MagicMock:
    ocr = MagicMock(spec=IOCRProvider)
    ocr.extract_text = AsyncMock(return_value="")
    ocr.get_provider_name.return_value = "mock-ocr"
    return ocr


class TestContentTypeHelpers:
    def test_pdf_detection_is_case_insensitive(self) -> None:
        assert is_pdf("application/pdf")
        assert is_pdf("Application/PDF")
        assert not is_pdf("application/octet-stream")
        assert not is_pdf(None)

    def test_image_detection(self) -> None:
        assert is_image("image/png")
        assert is_image("image/jpeg")
        assert not is_image("text/plain")
        assert not is_image(None)


class TestPdfExtraction:
    @pytest.mark.asyncio()
    async def test_pages_joined_with_newline(self, mock_ocr: MagicMock) -> None:
        data = make_pdf_bytes([["Welcome to the summit"], ["Lunch is at noon"]])
        result = await ContentExtractor(mock_ocr).extract(data, "application/pdf")

        assert "Welcome to the summit" in result.text
        assert "Lunch is at noon" in result.text
        assert result.text.index("Welcome") < result.text.index("Lunch")
        assert result.page_count == 2
        assert not result.is_fallback
        mock_ocr.extract_text.assert_not_called()

    @pytest.mark.asyncio()
    async def test_textless_pdf_raises_empty_content(self, mock_ocr: MagicMock) -> None:
        data = make_pdf_bytes([[]])
        with pytest.raises(EmptyContentError):
            await ContentExtractor(mock_ocr).extract(data, "application/pdf")

    @pytest.mark.asyncio()
    async def test_corrupt_pdf_raises_extraction_error(self, mock_ocr: MagicMock) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            await ContentExtractor(mock_ocr).extract(b"not a pdf at all", "application/pdf")
        assert not isinstance(exc_info.value, EmptyContentError)


class TestImageExtraction:
    @pytest.mark.asyncio()
    async def test_ocr_text_is_used(self, mock_ocr: MagicMock) -> None:
        mock_ocr.extract_text.return_value = "  Stage B map  \n"
        result = await ContentExtractor(mock_ocr).extract(b"img", "image/png")

        assert result.text == "Stage B map"
        assert not result.is_fallback
        mock_ocr.extract_text.assert_awaited_once_with(b"img", "image/png")

    @pytest.mark.asyncio()
    async def test_empty_ocr_falls_back_to_raw_bytes(self, mock_ocr: MagicMock) -> None:
        mock_ocr.extract_text.return_value = "   "
        result = await ContentExtractor(mock_ocr).extract(b"\x89PNG", "image/png")

        assert result.is_fallback
        assert result.raw_bytes == b"\x89PNG"
        assert result.text == ""

    @pytest.mark.asyncio()
    async def test_ocr_failure_propagates(self, mock_ocr: MagicMock) -> None:
        mock_ocr.extract_text.side_effect = ExtractionError("engine crashed")
        with pytest.raises(ExtractionError):
            await ContentExtractor(mock_ocr).extract(b"img", "image/jpeg")


@pytest.mark.asyncio()
async def test_unsupported_type_is_invalid_argument(mock_ocr: MagicMock) -> None:
    with pytest.raises(InvalidArgument):
        await ContentExtractor(mock_ocr).extract(b"hello", "text/plain")
