"""Unit tests for prompt context assembly."""
import pytest

from rfp_assist.models import ChunkPayload, RetrievedChunk
from rfp_assist.rag.context import build_context, format_source


def _chunk(text, doc_id="42", title="", idx=0):
    return RetrievedChunk(
        id=idx,
        score=0.5,
        vector_score=0.5,
        keyword_score=0.5,
        payload=ChunkPayload(doc_id=doc_id, title=title, text=text, chunk_index=idx),
    )


@pytest.mark.unit
class TestBuildContext:
    def test_bullets_joined_by_blank_line(self):
        ctx = build_context([_chunk("first"), _chunk("second", idx=1)])
        assert ctx.context == "• first\n\n• second"

    def test_empty(self):
        ctx = build_context([])
        assert ctx.context == ""
        assert ctx.sources == []

    def test_within_budget_is_not_truncated(self):
        ctx = build_context([_chunk("x" * 100)], max_chars=102)
        assert ctx.context == "• " + "x" * 100

    def test_truncated_to_budget_plus_ellipsis(self):
        chunks = [_chunk("a" * 3000, idx=0), _chunk("b" * 3000, idx=1)]
        ctx = build_context(chunks, max_chars=4000)

        assert len(ctx.context) == 4001
        assert ctx.context.endswith("…")
        assert ctx.context.startswith("• " + "a" * 3000)

    def test_sources_cover_truncated_chunks(self):
        chunks = [_chunk("a" * 3000, idx=i) for i in range(3)]
        ctx = build_context(chunks, max_chars=100)
        assert len(ctx.sources) == 3


@pytest.mark.unit
class TestFormatSource:
    def test_without_title(self):
        assert format_source(_chunk("t", doc_id="abc", idx=3)) == "doc:abc#3"

    def test_with_title(self):
        assert format_source(_chunk("t", doc_id="7", title="Refunds", idx=0)) == "doc:7(Refunds)#0"
