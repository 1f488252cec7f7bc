"""Text chunking utilities.

This module provides functions for splitting document text into overlapping
fixed-size windows.
"""

from typing import Iterator, List

from rfp_assist.models import Chunk, SourceDocument
from rfp_assist.rag.errors import InvalidConfiguration


def _check_window(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise InvalidConfiguration(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise InvalidConfiguration(
            f"chunk_overlap must not be negative, got {chunk_overlap}"
        )
    if chunk_overlap >= chunk_size:
        # the window would never move forward
        raise InvalidConfiguration(
            f"chunk_overlap ({chunk_overlap}) must be smaller than "
            f"chunk_size ({chunk_size})"
        )


def iter_windows(
    text: str, chunk_size: int = 1000, chunk_overlap: int = 150
) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` offsets of each window over ``text``.

    Consecutive windows share ``chunk_overlap`` characters; the last window
    ends at ``len(text)`` and may be shorter than ``chunk_size``.

    Raises:
        InvalidConfiguration: If the size/overlap pair cannot make progress.
    """
    _check_window(chunk_size, chunk_overlap)
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        yield start, end
        if end == len(text):
            break
        start = end - chunk_overlap


def chunk_text(
    text: str, chunk_size: int = 1000, chunk_overlap: int = 150
) -> List[str]:
    """Split text into overlapping chunks.

    Args:
        text: Text to chunk.
        chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared by consecutive chunks.

    Returns:
        Trimmed, non-empty chunks in document order.
    """
    chunks = []
    for start, end in iter_windows(text, chunk_size, chunk_overlap):
        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
    return chunks


def chunk_document(
    doc: SourceDocument, chunk_size: int = 1000, chunk_overlap: int = 150
) -> List[Chunk]:
    """Chunk a source document, numbering chunks from zero."""
    return [
        Chunk(doc_id=doc.id, chunk_index=idx, text=piece)
        for idx, piece in enumerate(chunk_text(doc.content, chunk_size, chunk_overlap))
    ]
