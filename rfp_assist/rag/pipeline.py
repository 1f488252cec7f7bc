"""RAG pipelines for document indexing and question answering.

This module provides the IngestionPipeline and QueryPipeline classes, which
wire the embedding provider, vector store, chat provider and the core
components together from Settings.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence

from rfp_assist.config import Settings
from rfp_assist.models import (
    AnswerResult,
    ChunkPayload,
    ConversationTurn,
    EmbeddedPoint,
    IndexReport,
    Question,
    SourceDocument,
)
from rfp_assist.rag.batch import BatchProcessor
from rfp_assist.rag.chunker import chunk_document
from rfp_assist.rag.embeddings import EmbeddingProvider, build_embedder
from rfp_assist.rag.generator import AnswerGenerator, ChatProvider, build_chat_client
from rfp_assist.rag.retriever import HybridRetriever
from rfp_assist.rag.vectorstore import VectorStore, build_vector_store, point_id

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Pipeline for indexing reference documents.

    Chunks each document, embeds the chunks and upserts them into the vector
    store under deterministic point ids. A document's previous points are
    removed first, so re-indexing replaces them even when it got shorter.
    """

    def __init__(
        self,
        settings: Settings,
        embedder: Optional[EmbeddingProvider] = None,
        store: Optional[VectorStore] = None,
    ) -> None:
        """Initialize ingestion pipeline.

        Args:
            settings: Application settings.
            embedder: Embedding provider; built from settings when omitted.
            store: Vector store; built from settings when omitted.
        """
        self.settings = settings
        self.embed = embedder or build_embedder(settings)
        self.vs = store or build_vector_store(settings)

    def _points_for(self, doc: SourceDocument) -> List[EmbeddedPoint]:
        chunks = chunk_document(
            doc, self.settings.chunk_size, self.settings.chunk_overlap
        )
        points = []
        for chunk in chunks:
            points.append(
                EmbeddedPoint(
                    id=point_id(doc.id, chunk.chunk_index),
                    vector=self.embed.embed(chunk.text),
                    payload=ChunkPayload(
                        doc_id=doc.id,
                        title=doc.title or "",
                        text=chunk.text,
                        chunk_index=chunk.chunk_index,
                        updated_at=doc.updated_at,
                    ),
                )
            )
        return points

    def index_documents(self, documents: Iterable[SourceDocument]) -> IndexReport:
        """Index documents into the vector store.

        Args:
            documents: Documents to (re-)index.

        Returns:
            IndexReport with indexed/skipped document and point counts.
        """
        report = IndexReport()
        collection_ready = False
        for doc in documents:
            if not doc.content or not doc.content.strip():
                logger.info(f"Skipping document {doc.id}: empty content")
                report.documents_skipped += 1
                continue

            points = self._points_for(doc)
            if not collection_ready:
                self.vs.ensure_collection(len(points[0].vector))
                collection_ready = True

            # Drop chunks left over from a longer earlier version
            self.vs.delete_document(doc.id)
            report.points_upserted += self.vs.upsert(points)
            report.documents_indexed += 1
            logger.info(f"Indexed document {doc.id}: {len(points)} chunks")

        logger.info(
            f"Indexing complete: {report.documents_indexed} documents, "
            f"{report.points_upserted} points, {report.documents_skipped} skipped"
        )
        return report


class QueryPipeline:
    """Pipeline for answering questions.

    Interactive calls (``chat``) raise AnswerGenerationError so the caller can
    show an error; batch calls (``process_questions``, ``regenerate_question``)
    turn failures into ``failed`` question records.
    """

    def __init__(
        self,
        settings: Settings,
        embedder: Optional[EmbeddingProvider] = None,
        store: Optional[VectorStore] = None,
        chat: Optional[ChatProvider] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize query pipeline.

        Args:
            settings: Application settings.
            embedder: Embedding provider; built from settings when omitted.
            store: Vector store; built from settings when omitted.
            chat: Chat provider; built from settings when omitted.
            sleep: Blocking sleep used for retry and inter-request delays.
        """
        self.settings = settings
        self.retriever = HybridRetriever(
            embedder or build_embedder(settings),
            store or build_vector_store(settings),
        )
        self.generator = AnswerGenerator(
            self.retriever, chat or build_chat_client(settings), settings, sleep=sleep
        )
        self.batch = BatchProcessor(
            self.generator, request_delay=settings.request_delay, sleep=sleep
        )

    def chat(
        self, message: str, history: Sequence[ConversationTurn] = ()
    ) -> AnswerResult:
        return self.generator.generate_answer(message, history)

    def process_questions(
        self,
        questions: Sequence[Question],
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> List[Question]:
        return self.batch.process_questions(questions, history)

    def regenerate_question(
        self,
        question: Question,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> Question:
        return self.batch.regenerate(question, history)
