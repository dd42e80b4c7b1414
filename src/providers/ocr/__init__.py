"""OCR provider implementations for uploaded event images."""

from src.providers.ocr.tesseract_provider import TesseractOCRProvider

__all__ = ["TesseractOCRProvider"]
