"""Data models for the retrieval and answering core.

This module defines Pydantic models for source documents, chunks, indexed
points, retrieval results and the question records the core annotates.
"""

from enum import Enum

from pydantic import BaseModel, Field


class SourceDocument(BaseModel):
    """Reference document owned by the document library.

    Attributes:
        id: Document identifier.
        title: Optional document title.
        content: Full text content.
        updated_at: Optional last-updated timestamp (ISO-8601).
    """

    id: str
    title: str | None = None
    content: str
    updated_at: str | None = None


class Chunk(BaseModel):
    """Slice of a document's text, the unit of embedding and retrieval.

    Attributes:
        doc_id: Identifier of the owning document.
        chunk_index: Zero-based position of the chunk in the document.
        text: Trimmed chunk text.
    """

    doc_id: str
    chunk_index: int
    text: str


class ChunkPayload(BaseModel):
    """Payload stored next to each vector in the index."""

    doc_id: str
    title: str = ""
    text: str
    chunk_index: int
    updated_at: str | None = None


class EmbeddedPoint(BaseModel):
    """Chunk with its embedding, keyed by a deterministic point id."""

    id: int
    vector: list[float]
    payload: ChunkPayload


class SearchHit(BaseModel):
    """Raw nearest-neighbour hit returned by a vector store."""

    id: int
    score: float
    payload: ChunkPayload


class RetrievedChunk(BaseModel):
    """Hybrid search result.

    Attributes:
        id: Point identifier.
        score: Fused score.
        vector_score: Raw vector similarity.
        keyword_score: Raw keyword overlap score in [0, 1].
        payload: Chunk payload (text, title, document id, chunk index).
    """

    id: int
    score: float
    vector_score: float
    keyword_score: float
    payload: ChunkPayload


class PromptContext(BaseModel):
    """Assembled context string and one source citation per input chunk."""

    context: str
    sources: list[str] = Field(default_factory=list)


class AnswerResult(BaseModel):
    """Generated answer and the citations of the chunks it was given."""

    answer: str
    sources: list[str] = Field(default_factory=list)


class QuestionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Question(BaseModel):
    """Question extracted from an RFP.

    The core only writes ``answer``, ``sources`` and ``status``; ``id``,
    ``text`` and ``accepted`` belong to the surrounding workflow.
    """

    id: str
    text: str
    answer: str | None = None
    accepted: bool = False
    status: QuestionStatus = QuestionStatus.PENDING
    sources: list[str] | None = None


class ConversationTurn(BaseModel):
    """Prior exchange passed to the generator as history."""

    question: str
    answer: str

    @classmethod
    def from_question(cls, question: Question) -> "ConversationTurn":
        return cls(question=question.text, answer=question.answer or "")


class IndexReport(BaseModel):
    """Outcome of an indexing run."""

    documents_indexed: int = 0
    documents_skipped: int = 0
    points_upserted: int = 0
