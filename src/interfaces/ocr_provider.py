"""Abstract base class for OCR providers.

The content extractor only needs raw text out of an image.  An empty string
is a legitimate result (photo with no words) and triggers the raw-bytes
embedding fallback; an engine failure must raise instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: TesseractOCRProvider (src/providers/ocr/)
class IOCRProvider(ABC):
    """Contract for OCR engines used on uploaded event images."""

    @abstractmethod
    async def extract_text(self, image_data: bytes, content_type: str = "image/jpeg") -> str:
        """Run OCR on the encoded image and return the recognised text.

        Returns
        -------
        str
            Recognised text, stripped.  ``""`` when the image holds no text.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the image cannot be decoded or the engine fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"tesseract"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the engine binary is installed and callable."""
