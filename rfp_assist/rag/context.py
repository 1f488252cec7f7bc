"""Prompt context assembly from retrieved chunks."""

from typing import Sequence

from rfp_assist.models import PromptContext, RetrievedChunk

BULLET = "• "
ELLIPSIS = "…"


def format_source(chunk: RetrievedChunk) -> str:
    """Citation of a chunk, ``doc:<id>(<title>)#<chunk index>``."""
    title = f"({chunk.payload.title})" if chunk.payload.title else ""
    return f"doc:{chunk.payload.doc_id}{title}#{chunk.payload.chunk_index}"


def build_context(
    chunks: Sequence[RetrievedChunk], max_chars: int = 4000
) -> PromptContext:
    """Join chunk texts into one bounded context string.

    Truncation applies to the joined string, so trailing chunks may be cut
    or dropped entirely; ``sources`` still lists every input chunk.
    """
    parts = [f"{BULLET}{c.payload.text}" for c in chunks]
    sources = [format_source(c) for c in chunks]
    context = "\n\n".join(parts)
    if len(context) > max_chars:
        context = context[:max_chars] + ELLIPSIS
    return PromptContext(context=context, sources=sources)
