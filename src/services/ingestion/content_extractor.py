"""Content extraction: PDF text via PyMuPDF, image text via OCR.

Dispatch is on the declared content type:

* ``application/pdf`` -- text of every page joined by newlines.  A parse
  failure raises :class:`ExtractionError`; a document with no text layer
  raises :class:`EmptyContentError`.
* ``image/*`` -- OCR through the injected :class:`IOCRProvider`.  When OCR
  succeeds but finds no text, the result is flagged ``is_fallback`` and
  carries the raw bytes so the pipeline can embed the image directly.
  An OCR engine failure raises :class:`ExtractionError`.
* anything else -- :class:`InvalidArgument`.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.ocr_provider import IOCRProvider
from src.models.ingestion import ExtractedContent
from src.utils.errors import EmptyContentError, ExtractionError, InvalidArgument

logger = structlog.get_logger(logger_name=__name__)

PDF_CONTENT_TYPE = "application/pdf"
IMAGE_CONTENT_PREFIX = "image/"


def is_pdf(content_type: str | None) -> bool:
    return (content_type or "").lower() == PDF_CONTENT_TYPE


def is_image(content_type: str | None) -> bool:
    return (content_type or "").lower().startswith(IMAGE_CONTENT_PREFIX)


def _read_pdf_text(data: bytes) -> tuple[str, int]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        pages = [page.get_text() for page in doc]
    return "\n".join(pages).strip(), len(pages)


class ContentExtractor:
    """Turns raw uploaded bytes into text (or an image fallback payload)."""

    def __init__(self, ocr_provider: IOCRProvider) -> None:
        self._ocr = ocr_provider

    async def extract(self, data: bytes, content_type: str) -> ExtractedContent:
        """Dispatch on *content_type*; see module docstring for outcomes."""
        if is_pdf(content_type):
            return await self.extract_pdf(data)
        if is_image(content_type):
            return await self.extract_image(data, content_type)
        raise InvalidArgument(f"Unsupported content type: {content_type!r}")

    async def extract_pdf(self, data: bytes) -> ExtractedContent:
        try:
            text, page_count = await asyncio.to_thread(_read_pdf_text, data)
        except Exception as exc:
            raise ExtractionError(f"Failed to parse PDF: {exc}", provider_name="pymupdf") from exc

        if not text:
            raise EmptyContentError("No text content found in PDF", provider_name="pymupdf")

        logger.info("pdf_text_extracted", pages=page_count, chars=len(text))
        return ExtractedContent(text=text, content_type=PDF_CONTENT_TYPE, page_count=page_count)

    async def extract_image(self, data: bytes, content_type: str) -> ExtractedContent:
        text = await self._ocr.extract_text(data, content_type)
        if text.strip():
            return ExtractedContent(text=text.strip(), content_type=content_type)

        logger.info(
            "image_ocr_empty_using_fallback",
            content_type=content_type,
            raw_bytes=len(data),
        )
        return ExtractedContent(
            text="",
            content_type=content_type,
            is_fallback=True,
            raw_bytes=data,
        )
