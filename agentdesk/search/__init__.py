"""
Search Services
Chunk storage and cosine-similarity retrieval
"""

from agentdesk.search.embedding_store import EmbeddingStore, ChunkRecord
from agentdesk.search.similarity import SimilarityRetriever, RetrievalResult, cosine_similarity

__all__ = ["EmbeddingStore", "ChunkRecord", "SimilarityRetriever", "RetrievalResult", "cosine_similarity"]
