"""Tesseract OCR provider for uploaded event images.

Wraps pytesseract.  Images are normalised to RGB (and alpha flattened onto
white) before recognition; the blocking Tesseract call runs in a worker
thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import io
import time

import pytesseract
from PIL import Image

from src.interfaces.ocr_provider import IOCRProvider
from src.utils.errors import ExtractionError
from src.utils.logging import get_logger


class TesseractOCRProvider(IOCRProvider):
    """OCR provider backed by Google Tesseract via pytesseract."""

    def __init__(self, lang: str = "eng", config: str = "") -> None:
        self._lang = lang
        self._config = config
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IOCRProvider interface
    # ------------------------------------------------------------------

    async def extract_text(self, image_data: bytes, content_type: str = "image/jpeg") -> str:
        """Return the text Tesseract recognises in the image, stripped."""
        if not image_data:
            raise ExtractionError("No image data provided", provider_name=self.get_provider_name())

        start = time.perf_counter()
        try:
            image = self._load_image(image_data)
            text = await asyncio.to_thread(
                pytesseract.image_to_string, image, lang=self._lang, config=self._config
            )
        except Exception as exc:
            self._logger.error(
                "ocr_extraction_failed",
                provider="tesseract",
                content_type=content_type,
                error=str(exc),
            )
            raise ExtractionError(
                f"Tesseract OCR failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text = text.strip()
        self._logger.info(
            "ocr_extraction_complete",
            provider="tesseract",
            content_type=content_type,
            chars=len(text),
            processing_time=round(time.perf_counter() - start, 3),
        )
        return text

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
            return True
        except (pytesseract.TesseractNotFoundError, OSError):
            return False

    @staticmethod
    def _load_image(image_data: bytes) -> Image.Image:
        image = Image.open(io.BytesIO(image_data))
        if image.mode in ("RGBA", "LA", "P"):
            image = image.convert("RGBA")
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            return background
        return image.convert("RGB")
