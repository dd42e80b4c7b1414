"""Fixed-window text chunking with character overlap.

Chunk *i* covers ``[i * (S - O), min(i * (S - O) + S, len))`` where ``S``
is the window size and ``O`` the overlap, both in characters.  The last
chunk ends exactly at the end of the text, so dropping the first ``O``
characters of every chunk after the first and concatenating reproduces the
input.  A concept straddling a boundary therefore appears whole in at
least one chunk as long as it is shorter than ``O``.

For the defaults (3000/300) a 7000-character text yields chunks starting
at 0, 2700 and 5400 with lengths 3000, 3000 and 1600.
"""

from __future__ import annotations

import structlog

from src.utils.errors import EmptyContentError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 3000
DEFAULT_CHUNK_OVERLAP = 300


def _validate(size: int, overlap: int) -> None:
    if overlap < 0:
        raise ValueError(f"chunk overlap must be non-negative, got {overlap}")
    if size <= overlap:
        raise ValueError(f"chunk size ({size}) must exceed overlap ({overlap})")


def split_text(
    text: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split *text* into overlapping character windows.

    Returns an empty list for empty input and a single chunk when the text
    fits in one window.

    Raises
    ------
    ValueError
        If ``size <= overlap`` or ``overlap < 0``.
    """
    _validate(size, overlap)
    length = len(text)
    if length == 0:
        return []

    step = size - overlap
    chunks: list[str] = []
    start = 0
    while True:
        end = min(start + size, length)
        chunks.append(text[start:end])
        if end >= length:
            break
        start += step
    return chunks


def join_chunks(chunks: list[str], overlap: int = DEFAULT_CHUNK_OVERLAP) -> str:
    """Inverse of :func:`split_text`: strip the overlap and concatenate."""
    if not chunks:
        return ""
    return chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])


class TextChunker:
    """Configured chunker used by the ingestion pipeline.

    Unlike :func:`split_text`, :meth:`chunk` treats text with no
    non-whitespace characters as an error so the pipeline never proceeds to
    embedding with nothing to embed.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        _validate(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> list[str]:
        """Split *text*; raise :class:`EmptyContentError` if it is blank."""
        if not text or not text.strip():
            raise EmptyContentError("No text content to chunk")

        chunks = split_text(text, self._chunk_size, self._overlap)
        logger.debug(
            "text_chunked",
            chars=len(text),
            chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks
