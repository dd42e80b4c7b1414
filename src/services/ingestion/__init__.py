"""Document ingestion pipeline for the per-event knowledge base.

Pipeline stages overview:

1. **Extract** (content_extractor.py / ContentExtractor) -- PDF text via
   PyMuPDF, image text via OCR, or a raw-bytes fallback for images with
   no recognisable text.

2. **Chunk** (chunker.py / TextChunker) -- 3000-character windows with
   300-character overlap.

3. **Embed** (via IEmbeddingProvider) -- one vector per chunk.

4. **Upsert** (via IVectorStoreProvider) -- namespace = event id, vector
   id = ``{storagePath}#{chunkIndex}``.

5. **Record** (via IEventStore) -- asset status written only on success.

IngestionService orchestrates the stages and also serves as the upload
trigger handler for ``events/{id}/docs/`` paths.
"""

from src.services.ingestion.chunker import TextChunker, split_text
from src.services.ingestion.content_extractor import ContentExtractor
from src.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "ContentExtractor",
    "IngestionService",
    "TextChunker",
    "split_text",
]
