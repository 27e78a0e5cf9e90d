"""
Unit tests for cosine similarity, EmbeddingStore and SimilarityRetriever
"""

import pytest

from agentdesk.search.embedding_store import ChunkRecord, EmbeddingStore
from agentdesk.search.similarity import RetrievalResult, SimilarityRetriever, cosine_similarity
from conftest import keyword_vector


@pytest.mark.unit
class TestCosineSimilarity:

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 5.0]) == pytest.approx(0.0)

    def test_zero_vector_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0

    def test_bounded(self):
        pairs = [
            ([0.3, -2.0, 7.1], [1e-9, 4.0, -0.2]),
            ([1e8, 1e8], [1e8, 1e8 + 1]),
            ([-5.0, 0.1], [2.0, 2.0]),
        ]
        for a, b in pairs:
            assert -1.0 <= cosine_similarity(a, b) <= 1.0


@pytest.mark.unit
class TestSimilarityRetriever:
    """Test suite for SimilarityRetriever"""

    def test_no_knowledge_base(self, db_session, test_agent):
        retriever = SimilarityRetriever(EmbeddingStore(db_session))

        assert retriever.has_knowledge_base(test_agent.id) is False
        result = retriever.search(test_agent.id, [1.0, 0.0])
        assert result.has_knowledge_base is False
        assert result.chunks == []

    def test_results_sorted_by_similarity(self, db_session, test_agent, knowledge_chunks):
        retriever = SimilarityRetriever(EmbeddingStore(db_session))

        result = retriever.search(test_agent.id, keyword_vector("refund billing"), k=4)

        scores = [chunk["score"] for chunk in result.chunks]
        assert scores == sorted(scores, reverse=True)
        assert result.chunks[0]["source"] == "Billing FAQ"

    def test_top_k_limit(self, db_session, test_agent, knowledge_chunks):
        retriever = SimilarityRetriever(EmbeddingStore(db_session))
        result = retriever.search(test_agent.id, keyword_vector("login"), k=3)
        assert len(result.chunks) == 3

    def test_search_is_deterministic(self, db_session, test_agent, knowledge_chunks):
        retriever = SimilarityRetriever(EmbeddingStore(db_session))
        query = keyword_vector("password login")

        first = retriever.search(test_agent.id, query, k=4)
        second = retriever.search(test_agent.id, query, k=4)

        assert [c["chunk_id"] for c in first.chunks] == [c["chunk_id"] for c in second.chunks]

    def test_ties_keep_storage_order(self, db_session, test_agent):
        store = EmbeddingStore(db_session)
        stored = store.bulk_write(test_agent.id, [
            ChunkRecord(content="first", embedding=[1.0, 1.0], source_name="A", chunk_index=0),
            ChunkRecord(content="second", embedding=[1.0, 1.0], source_name="B", chunk_index=1),
            ChunkRecord(content="third", embedding=[1.0, 1.0], source_name="C", chunk_index=2),
        ])

        result = SimilarityRetriever(store).search(test_agent.id, [1.0, 1.0], k=3)

        assert [c["chunk_id"] for c in result.chunks] == [chunk.id for chunk in stored]

    def test_null_embeddings_skipped_but_count_as_knowledge(self, db_session, test_agent):
        store = EmbeddingStore(db_session)
        store.bulk_write(test_agent.id, [
            ChunkRecord(content="no vector", embedding=None, embedding_error="rate limited"),
        ])
        retriever = SimilarityRetriever(store)

        assert retriever.has_knowledge_base(test_agent.id) is True
        result = retriever.search(test_agent.id, [1.0, 0.0])
        assert result.has_knowledge_base is True
        assert result.chunks == []

    def test_chunks_scoped_to_agent(self, db_session, test_agent, knowledge_chunks):
        retriever = SimilarityRetriever(EmbeddingStore(db_session))
        assert retriever.has_knowledge_base("some-other-agent") is False


@pytest.mark.unit
class TestRetrievalResult:

    def test_sources_are_distinct_in_order(self):
        result = RetrievalResult(has_knowledge_base=True, chunks=[
            {"content": "a", "source": "Guide"},
            {"content": "b", "source": "FAQ"},
            {"content": "c", "source": "Guide"},
            {"content": "d", "source": None},
        ])
        assert result.sources == ["Guide", "FAQ"]
        assert result.context_texts == ["a", "b", "c", "d"]
