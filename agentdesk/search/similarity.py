"""
Similarity Retriever
Cosine similarity between a query vector and every stored chunk of an agent
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from agentdesk.config import settings
from agentdesk.search.embedding_store import EmbeddingStore

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors

    Returns 0.0 when either vector has zero magnitude.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    value = float(np.dot(a, b) / (norm_a * norm_b))
    # Guard against floating point drift just outside [-1, 1]
    return max(-1.0, min(1.0, value))


@dataclass
class RetrievalResult:
    """
    Outcome of a retrieval

    ``has_knowledge_base`` is False when the agent has no chunks at all;
    callers must answer with the canned reply instead of prompting.
    """
    has_knowledge_base: bool
    chunks: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def sources(self) -> List[str]:
        """Distinct source names in similarity order"""
        seen = []
        for chunk in self.chunks:
            name = chunk.get("source")
            if name and name not in seen:
                seen.append(name)
        return seen

    @property
    def context_texts(self) -> List[str]:
        return [chunk["content"] for chunk in self.chunks]


NO_KNOWLEDGE_BASE = RetrievalResult(has_knowledge_base=False)


class SimilarityRetriever:
    """Top-K retrieval by brute-force cosine similarity"""

    def __init__(self, store: EmbeddingStore):
        self.store = store

    def has_knowledge_base(self, agent_id: str) -> bool:
        return self.store.count(agent_id) > 0

    def search(
        self,
        agent_id: str,
        query_vector: Sequence[float],
        k: int = settings.RETRIEVAL_TOP_K,
    ) -> RetrievalResult:
        """
        Rank the agent's embedded chunks against ``query_vector``

        Args:
            agent_id: Agent whose chunks are searched
            query_vector: Query embedding
            k: Number of results

        Returns:
            RetrievalResult with up to ``k`` chunks, similarity descending;
            ties keep storage order
        """
        if not self.has_knowledge_base(agent_id):
            return NO_KNOWLEDGE_BASE

        stored = self.store.load_embedded(agent_id)
        scored = [
            (cosine_similarity(query_vector, chunk.embedding), chunk)
            for chunk in stored
        ]
        # sorted() is stable, so equal scores keep storage order
        ranked = sorted(scored, key=lambda item: item[0], reverse=True)[:k]

        logger.debug(
            f"Retrieved {len(ranked)} of {len(stored)} embedded chunks for agent {agent_id}"
        )

        return RetrievalResult(
            has_knowledge_base=True,
            chunks=[
                {
                    "chunk_id": chunk.id,
                    "content": chunk.content,
                    "chunk_index": chunk.chunk_index,
                    "source": chunk.source_name,
                    "score": score,
                }
                for score, chunk in ranked
            ],
        )
