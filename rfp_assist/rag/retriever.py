"""Hybrid retrieval: wide semantic search re-scored by keyword overlap.

Pure vector search under-ranks literal matches (policy numbers, acronyms)
and pure keyword search misses paraphrases, so candidates come from a
widened vector search and are re-ranked by a weighted fusion of both
signals.
"""

import logging
import re
from typing import List

from rfp_assist.models import RetrievedChunk
from rfp_assist.rag.embeddings import EmbeddingProvider
from rfp_assist.rag.errors import InvalidConfiguration
from rfp_assist.rag.vectorstore import VectorStore

logger = logging.getLogger(__name__)

# Unicode letters and digits survive; everything else, underscore included, splits
_NON_ALNUM = re.compile(r"[^\w\s]|_")


def tokenize(text: str) -> List[str]:
    """Lowercase, strip non-alphanumerics and split on whitespace."""
    return _NON_ALNUM.sub(" ", (text or "").lower()).split()


def keyword_score(query_tokens: List[str], doc_tokens: List[str]) -> float:
    """Share of query tokens present in the document token set, in [0, 1]."""
    if not query_tokens or not doc_tokens:
        return 0.0
    doc_set = set(doc_tokens)
    matched = sum(1 for t in query_tokens if t in doc_set)
    return min(1.0, matched / len(query_tokens))


def fuse_scores(vector_score: float, kw_score: float, alpha: float) -> float:
    return alpha * vector_score + (1 - alpha) * kw_score


class HybridRetriever:
    def __init__(self, embedder: EmbeddingProvider, store: VectorStore):
        self.embedder = embedder
        self.store = store

    def search(
        self,
        query: str,
        top_k: int = 6,
        widen: int = 40,
        alpha: float = 0.7,
    ) -> List[RetrievedChunk]:
        """Return at most ``top_k`` chunks ranked by fused score.

        Args:
            query: Query text.
            top_k: Number of results to return.
            widen: Size of the semantic candidate pool.
            alpha: Weight of vector similarity; ``1 - alpha`` weighs keywords.

        Raises:
            InvalidConfiguration: If ``top_k`` is not positive or ``alpha``
                is outside [0, 1].
            EmbeddingServiceError: If the query cannot be embedded.
        """
        if top_k <= 0:
            raise InvalidConfiguration(f"top_k must be positive, got {top_k}")
        if not 0.0 <= alpha <= 1.0:
            raise InvalidConfiguration(f"alpha must be within [0, 1], got {alpha}")

        query_vector = self.embedder.embed(query)
        # The index may not exist yet on a fresh deployment
        self.store.ensure_collection(len(query_vector))

        candidates = self.store.search(query_vector, limit=max(top_k, widen))

        query_tokens = tokenize(query)
        rescored = []
        for hit in candidates:
            kw = keyword_score(query_tokens, tokenize(hit.payload.text))
            rescored.append(
                RetrievedChunk(
                    id=hit.id,
                    score=fuse_scores(hit.score, kw, alpha),
                    vector_score=hit.score,
                    keyword_score=kw,
                    payload=hit.payload,
                )
            )

        # sorted() is stable, so equal fused scores keep vector-search order
        rescored = sorted(rescored, key=lambda c: -c.score)
        logger.info(
            f"Hybrid search: {len(candidates)} candidates, returning {min(top_k, len(rescored))}"
        )
        return rescored[:top_k]
